"""
Unit Tests for RepairResponseParser
"""
from livepreview.utils.response_parser import RepairResponseParser


class TestParseXmlTags:
    def test_attributes_and_content(self):
        blocks = RepairResponseParser.parse_xml_tags('<file path="src/App.tsx">\nconst a = 1;\n</file>', "file")
        assert blocks == [{"content": "const a = 1;", "path": "src/App.tsx"}]

    def test_multiple_blocks(self):
        response = '<file path="a.ts">\na\n</file>\ntext\n<file path="b.ts">\nb\n</file>'
        assert [b["path"] for b in RepairResponseParser.parse_xml_tags(response, "file")] == ["a.ts", "b.ts"]

    def test_no_tags(self):
        assert RepairResponseParser.parse_xml_tags("nothing here", "file") == []


class TestExtractFiles:
    """Test collection of tagged file blocks"""

    def test_action_blocks_take_precedence(self):
        response = (
            '<action type="file" filePath="App.tsx">\nfrom action\n</action>\n'
            '<file path="App.tsx">\nfrom file\n</file>\n'
            '<file path="Other.tsx">\nother\n</file>'
        )
        assert RepairResponseParser.extract_files(response) == {
            "App.tsx": "from action",
            "Other.tsx": "other",
        }

    def test_non_file_actions_ignored(self):
        response = '<action type="shell" filePath="x.sh">\nnpm i\n</action>'
        assert RepairResponseParser.extract_files(response) == {}


class TestExtractFileContent:
    """Test picking the target file out of a reply"""

    def test_matches_normalized_path(self):
        response = '<file path="src/App.tsx">\nfixed\n</file>\n<file path="src/Other.tsx">\nother\n</file>'
        assert RepairResponseParser.extract_file_content(response, "App.tsx") == "fixed"

    def test_single_block_for_another_file_rejected(self):
        response = '<file path="components/Btn.tsx">\nexport default function Btn() { return null }\n</file>'
        assert RepairResponseParser.extract_file_content(response, "App.tsx") is None

    def test_several_unrelated_blocks_rejected(self):
        response = '<file path="a.tsx">\na\n</file>\n<file path="b.tsx">\nb\n</file>'
        assert RepairResponseParser.extract_file_content(response, "App.tsx") is None

    def test_fenced_code_fallback(self):
        response = "Here is the fix:\n```tsx\nconst a = 1;\n```\nDone."
        assert RepairResponseParser.extract_file_content(response, "App.tsx") == "const a = 1;\n"

    def test_no_content(self):
        assert RepairResponseParser.extract_file_content("I cannot help with that.", "App.tsx") is None


class TestExtractReplyFiles:
    """Test collecting every file a reply writes"""

    def test_all_tagged_files_kept_under_their_paths(self):
        response = (
            '<file path="components/Btn.tsx">\nbtn\n</file>\n'
            '<file path="src/App.tsx">\napp\n</file>'
        )
        assert RepairResponseParser.extract_reply_files(response, "App.tsx") == {
            "components/Btn.tsx": "btn",
            "src/App.tsx": "app",
        }

    def test_other_file_only_is_not_renamed_to_target(self):
        response = '<file path="components/Btn.tsx">\nbtn\n</file>'
        assert RepairResponseParser.extract_reply_files(response, "App.tsx") == {"components/Btn.tsx": "btn"}

    def test_fenced_code_goes_to_target(self):
        response = "```tsx\nconst a = 1;\n```"
        assert RepairResponseParser.extract_reply_files(response, "App.tsx") == {"App.tsx": "const a = 1;\n"}

    def test_nothing_usable(self):
        assert RepairResponseParser.extract_reply_files("No.", "App.tsx") == {}
