from flow.serializers.events import CleanTextField


def test_clean_text_strips_every_tag():
    field = CleanTextField()
    cleaned = field.to_internal_value('  Walk <b>in</b> <a href="x">link</a> <em>now</em> ')
    assert cleaned == 'Walk in link now'


def test_clean_text_drops_script_markup():
    assert '<' not in CleanTextField().to_internal_value('<script>x</script>sprained ankle')
