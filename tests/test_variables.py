from agentflow.variables import extract_variables, has_variables, resolve, resolve_in_object, to_text


CONTEXT = {
    "trigger": {"name": "Alice", "tags": ["a", "b"], "score": 85},
    "fetch_data": {"output": {"items": [{"id": 1}, {"id": 2}]}},
}


def test_resolves_dotted_path():
    assert resolve("Hi {{trigger.name}}", CONTEXT) == "Hi Alice"


def test_unresolved_token_left_verbatim():
    assert resolve("Hi {{missing.name}} and {{trigger.nope}}", CONTEXT) == "Hi {{missing.name}} and {{trigger.nope}}"


def test_resolving_twice_is_same_as_once():
    text = "{{trigger.name}} {{unknown}} {{trigger.score}}"
    once = resolve(text, CONTEXT)
    assert resolve(once, CONTEXT) == once


def test_objects_are_json_encoded():
    assert resolve("{{trigger.tags}}", CONTEXT) == '["a", "b"]'
    assert resolve("{{trigger.score}}", CONTEXT) == "85"


def test_list_index_in_path():
    assert resolve("{{fetch_data.output.items.1.id}}", CONTEXT) == "2"


def test_non_strings_pass_through():
    assert resolve(None, CONTEXT) is None
    assert resolve(42, CONTEXT) == 42


def test_resolve_in_object_walks_nested_values():
    template = {"greeting": "Hi {{trigger.name}}", "list": ["{{trigger.score}}", 3], "flag": True}
    assert resolve_in_object(template, CONTEXT) == {"greeting": "Hi Alice", "list": ["85", 3], "flag": True}


def test_helpers():
    assert has_variables("x {{a.b}}")
    assert not has_variables("plain")
    assert extract_variables("{{trigger.name}} and {{ summarize.output }}") == ["trigger", "summarize"]
    assert to_text(None) == ""
    assert to_text(True) == "true"
