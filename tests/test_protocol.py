"""Tests for the labeled-section response protocol."""

from vibecode.protocol import FileWriteRequest, Intent, format_intent, parse_response


FULL_RESPONSE = """\
PLAN:
Create a greeting script and check the repo.

FILES_TO_READ:
- README.md
* lib/app.rb

FILE: hello_world.rb
```ruby
puts "Hello, world!"
```

COMMANDS:
git status

RESPONSE:
Created hello_world.rb.
"""


class TestParseResponse:
    """parse_response() extracts each labeled section."""

    def test_all_sections(self):
        intent = parse_response(FULL_RESPONSE)
        assert intent.plan == "Create a greeting script and check the repo."
        assert intent.read_requests == ["README.md", "lib/app.rb"]
        assert intent.write_requests == [
            FileWriteRequest(path="hello_world.rb", content='puts "Hello, world!"')
        ]
        assert intent.commands == ["git status"]
        assert intent.response == "Created hello_world.rb."
        assert intent.warnings == []

    def test_missing_sections_are_none(self):
        intent = parse_response("RESPONSE:\nJust an answer.")
        assert intent.plan is None
        assert intent.read_requests is None
        assert intent.write_requests is None
        assert intent.commands is None
        assert intent.response == "Just an answer."
        assert not intent.has_actions

    def test_empty_text(self):
        intent = parse_response("")
        assert intent.is_empty
        assert intent == Intent()

    def test_unlabelled_text_is_empty_intent(self):
        intent = parse_response("Sorry, I cannot help with that.")
        assert intent.is_empty

    def test_response_on_label_line(self):
        intent = parse_response("RESPONSE: all done")
        assert intent.response == "all done"

    def test_multiline_response_keeps_inner_lines(self):
        intent = parse_response("RESPONSE:\nLine one\n\nLine two\n")
        assert intent.response == "Line one\n\nLine two"

    def test_placeholder_items_ignored(self):
        intent = parse_response("FILES_TO_READ:\nnone\n\nCOMMANDS:\n(none)\n\nRESPONSE:\nok")
        assert intent.read_requests is None
        assert intent.commands is None
        assert intent.response == "ok"

    def test_multiple_file_blocks_in_order(self):
        text = (
            "FILE: a.rb\n```ruby\nputs 1\n```\n\n"
            "FILE: lib/b.rb\n```\ndef b; end\n```\n"
        )
        intent = parse_response(text)
        assert [w.path for w in intent.write_requests] == ["a.rb", "lib/b.rb"]
        assert intent.write_requests[1].content == "def b; end"

    def test_labels_inside_fence_are_content(self):
        text = 'FILE: notes.md\n```\nRESPONSE: not a label\nPLAN: nor this\n```\n\nRESPONSE:\nreal'
        intent = parse_response(text)
        assert intent.write_requests[0].content == "RESPONSE: not a label\nPLAN: nor this"
        assert intent.response == "real"
        assert intent.plan is None

    def test_path_on_line_before_fence(self):
        intent = parse_response("FILE:\n`hello.rb`\n```ruby\nputs 1\n```\n")
        assert intent.write_requests == [FileWriteRequest(path="hello.rb", content="puts 1")]

    def test_backticked_path_is_stripped(self):
        intent = parse_response("FILE: `x.rb`\n```\nputs 1\n```\n")
        assert intent.write_requests[0].path == "x.rb"

    def test_repeated_label_keeps_first(self):
        intent = parse_response("RESPONSE:\nfirst\n\nRESPONSE:\nsecond")
        assert intent.response == "first"
        assert intent.warnings == ["Ignored repeated RESPONSE section"]

    def test_nested_tagged_fence_kept_in_content(self):
        text = "FILE: README.md\n```\n# T\n```bash\nmake\n```\nmore\n```\n\nRESPONSE:\ndone"
        intent = parse_response(text)
        assert intent.write_requests == [FileWriteRequest("README.md", "# T\n```bash\nmake\n```\nmore")]
        assert intent.response == "done"

    def test_longer_outer_fence_closes_only_on_matching_length(self):
        text = "FILE: notes.md\n````\n```\nplain\n```\n````\n"
        intent = parse_response(text)
        assert intent.write_requests[0].content == "```\nplain\n```"

    def test_content_trailing_whitespace_trimmed(self):
        intent = parse_response("FILE: a.txt\n```\nline\n\n\n```\n")
        assert intent.write_requests[0].content == "line"


class TestMalformedSections:
    """Malformed sections are dropped with a warning and never raise."""

    def test_file_without_fence_dropped(self):
        intent = parse_response("FILE: a.rb\nputs 1\n\nRESPONSE:\nok")
        assert intent.write_requests is None
        assert intent.response == "ok"
        assert intent.warnings == ["Dropped FILE block for a.rb: no code fence"]

    def test_unterminated_fence_dropped(self):
        intent = parse_response("FILE: a.rb\n```ruby\nputs 1\n")
        assert intent.write_requests is None
        assert "unterminated code fence" in intent.warnings[0]

    def test_unterminated_fence_does_not_swallow_next_file(self):
        text = "FILE: a.rb\n```ruby\nputs 1\nFILE: b.rb\n```ruby\nputs 2\n```\n"
        intent = parse_response(text)
        assert intent.write_requests == [FileWriteRequest(path="b.rb", content="puts 2")]
        assert any("a.rb" in w for w in intent.warnings)

    def test_file_without_path_dropped(self):
        intent = parse_response("FILE:\n```\nputs 1\n```\n")
        assert intent.write_requests is None
        assert intent.warnings == ["Dropped FILE block: no path given"]

    def test_lowercase_labels_not_recognized(self):
        intent = parse_response("response:\nhello")
        assert intent.is_empty


class TestFormatIntent:
    """format_intent() produces text that parses back to the same Intent."""

    def test_round_trip(self):
        intent = Intent(
            plan="Do the thing.",
            read_requests=["README.md"],
            write_requests=[
                FileWriteRequest("hello.rb", 'puts "hi"'),
                FileWriteRequest("docs/notes.md", "# Notes\n\nSome text"),
            ],
            commands=["git status", "git log --oneline -5"],
            response="Done.",
        )
        assert parse_response(format_intent(intent)) == intent

    def test_round_trip_response_only(self):
        intent = Intent(response="Just talking.")
        assert parse_response(format_intent(intent)) == intent

    def test_format_omits_absent_sections(self):
        text = format_intent(Intent(response="x"))
        assert "PLAN:" not in text
        assert text == "RESPONSE:\nx\n"

    def test_round_trip_content_with_fences(self):
        intent = Intent(write_requests=[FileWriteRequest("README.md", "# T\n```bash\nmake\n```\nmore")])
        text = format_intent(intent)
        assert "FILE: README.md\n````\n" in text
        assert parse_response(text) == intent
