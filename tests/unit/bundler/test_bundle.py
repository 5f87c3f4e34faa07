"""
Unit Tests for bundle() - the bundler's public entry point

These run against the real VirtualLinker backend.
"""
import pytest
from unittest.mock import AsyncMock, MagicMock

from livepreview.core.config import settings
from livepreview.core.exceptions import BuildFailure
from livepreview.services.bundler import bundle, is_initialized, set_backend
from livepreview.services.bundler.models import BuildOutput, BundleError, SourceLocation


class TestBundleEarlyFailures:
    """Failures decided before the backend is touched"""

    @pytest.mark.asyncio
    async def test_empty_map(self):
        backend = MagicMock()
        backend.initialize = AsyncMock()
        backend.build = AsyncMock()
        set_backend(backend)

        result = await bundle({})

        assert result.success is False
        assert [e.text for e in result.errors] == ["No files to bundle"]
        backend.initialize.assert_not_called()
        backend.build.assert_not_called()
        assert not is_initialized()

    @pytest.mark.asyncio
    async def test_nothing_bundleable(self):
        result = await bundle({"vite.config.ts": "export default {}", "README.md": "# hi"})
        assert result.success is False
        assert result.errors[0].text == "No bundleable code files found"

    @pytest.mark.asyncio
    async def test_no_entry_point(self):
        result = await bundle({"src/utils.ts": "export const a = 1", "src/theme.css": "body{}"})
        assert result.success is False
        assert result.errors[0].text == "No entry point found. Available files: utils.ts, theme.css"
        assert result.entry_point == ""


class TestBundleSuccess:
    """Successful builds through the synthetic entry and self-mounting files"""

    @pytest.mark.asyncio
    async def test_root_component_is_wrapped(self, app_files):
        result = await bundle(app_files)

        assert result.success is True, result.error_texts()
        assert result.entry_point == "App.tsx"
        assert f'__lp_modules["{settings.PREVIEW_ENTRY_KEY}"]' in result.code
        assert f'__lp_require("{settings.PREVIEW_ENTRY_KEY}");' in result.code
        assert settings.PREVIEW_ENTRY_KEY not in app_files

    @pytest.mark.asyncio
    async def test_self_closing_icon_with_expression_attribute(self):
        app = (
            "import { useState } from 'react';\n"
            "import { Star } from 'lucide-react';\n"
            "\n"
            "export default function App() {\n"
            "  const [open, setOpen] = useState(false);\n"
            "  return (\n"
            "    <div onClick={() => setOpen(!open)}>\n"
            "      <Star size={16} /> {open && <span>hi</span>}\n"
            "    </div>\n"
            "  );\n"
            "}\n"
        )
        result = await bundle({"App.tsx": app})

        assert result.success is True, result.error_texts()
        assert "lucide-react" in result.externals

    @pytest.mark.asyncio
    async def test_externals_in_first_seen_order(self, app_files):
        result = await bundle(app_files)
        assert result.externals == ("react-dom/client", "react")

    @pytest.mark.asyncio
    async def test_imported_css_goes_to_css_output(self, app_files):
        result = await bundle(app_files)
        assert "body { font-family: sans-serif; }" in result.css
        assert result.css.count("font-family") == 1
        assert "font-family" not in result.code

    @pytest.mark.asyncio
    async def test_standalone_css_is_appended(self):
        files = {
            "App.tsx": "export default function App() { return <div>hi</div> }",
            "theme.css": ".card { padding: 4px; }",
        }
        result = await bundle(files)
        assert result.success is True
        assert ".card { padding: 4px; }" in result.css

    @pytest.mark.asyncio
    async def test_self_mounting_entry(self):
        files = {
            "src/main.tsx": (
                "import { createRoot } from 'react-dom/client';\n"
                "import App from './App';\n"
                "createRoot(document.getElementById('root')!).render(<App />);\n"
            ),
            "src/App.tsx": "export default function App() { return <h1>Hello</h1> }\n",
        }
        result = await bundle(files)

        assert result.success is True, result.error_texts()
        assert result.entry_point == "main.tsx"
        assert settings.PREVIEW_ENTRY_KEY not in result.code
        assert '__lp_require("main.tsx");' in result.code

    @pytest.mark.asyncio
    async def test_caller_map_not_mutated(self, app_files):
        snapshot = dict(app_files)
        await bundle(app_files)
        assert app_files == snapshot

    @pytest.mark.asyncio
    async def test_garbage_file_is_dropped(self):
        files = {
            "App.tsx": "export default function App() { return <p>ok</p> }",
            "broken.tsx": "!!! truncated generation",
        }
        result = await bundle(files)
        assert result.success is True
        assert "truncated generation" not in result.code

    @pytest.mark.asyncio
    async def test_unresolved_relative_import_warns(self):
        files = {
            "App.tsx": "import Header from './components/Header';\nexport default function App() { return <Header /> }",
        }
        result = await bundle(files)
        assert result.success is True
        assert result.warnings == (
            '"./components/Header" imported by App.tsx is not in the file map and was left external',
        )
        assert result.externals == ("react-dom/client", "react")


class TestBundleBuildErrors:
    """Compiler failures come back as BundleResult errors"""

    @pytest.mark.asyncio
    async def test_undefined_component(self):
        source = "export default function App(){ return <Btn/> }"
        result = await bundle({"App.tsx": source})

        assert result.success is False
        assert result.entry_point == "App.tsx"
        error = result.errors[0]
        assert error.text == "ReferenceError: Btn is not defined"
        column = source.index("<Btn") + 1
        assert error.location == SourceLocation(file="App.tsx", line=1, column=column)
        assert result.error_texts() == [f"ReferenceError: Btn is not defined (App.tsx:1:{column})"]

    @pytest.mark.asyncio
    async def test_unbalanced_braces(self):
        result = await bundle({"App.tsx": "export default function App() {\n  return <div>Hi</div>;\n"})
        assert result.success is False
        assert result.errors[0].text == 'Unexpected end of input, expected "}"'
        assert result.errors[0].location.file == "App.tsx"

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        files = {
            "App.tsx": "import data from './data.json';\nexport default function App() { return <p>{data.title}</p> }",
            "data.json": '{"title": "x",}',
        }
        result = await bundle(files)
        assert result.success is False
        assert result.errors[0].text.startswith("Invalid JSON:")
        assert result.errors[0].location.file == "data.json"

    @pytest.mark.asyncio
    async def test_all_errors_collected(self):
        files = {
            "App.tsx": "import Other from './Other';\nexport default function App() { return <Nope /> }",
            "Other.tsx": "export default function Other() { return <Missing /> }",
        }
        result = await bundle(files)
        assert result.success is False
        assert [e.text for e in result.errors] == [
            "ReferenceError: Nope is not defined",
            "ReferenceError: Missing is not defined",
        ]
        assert [e.location.file for e in result.errors] == ["App.tsx", "Other.tsx"]

    @pytest.mark.asyncio
    async def test_backend_build_failure_is_mapped(self):
        backend = MagicMock()
        backend.name = "fake"
        backend.initialize = AsyncMock()
        backend.build = AsyncMock(side_effect=BuildFailure([
            BundleError(text="Unexpected token }", location=SourceLocation("App.tsx", 2, 1)),
        ]))
        set_backend(backend)

        result = await bundle({"App.tsx": "export default () => null"})

        assert result.success is False
        assert result.error_texts() == ["Unexpected token } (App.tsx:2:1)"]

    @pytest.mark.asyncio
    async def test_unexpected_exception_never_escapes(self):
        backend = MagicMock()
        backend.name = "fake"
        backend.initialize = AsyncMock()
        backend.build = AsyncMock(side_effect=KeyError("boom"))
        set_backend(backend)

        result = await bundle({"App.tsx": "export default () => null"})

        assert result.success is False
        assert result.errors[0].text == "'boom'"

    @pytest.mark.asyncio
    async def test_backend_init_failure(self):
        backend = MagicMock()
        backend.name = "fake"
        backend.initialize = AsyncMock(side_effect=RuntimeError("wasm failed"))
        backend.build = AsyncMock(return_value=BuildOutput())
        set_backend(backend)

        result = await bundle({"App.tsx": "export default () => null"})

        assert result.success is False
        assert result.errors[0].text == "Failed to initialize fake: wasm failed"
        backend.build.assert_not_called()
