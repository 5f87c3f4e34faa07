"""
Self-contained HTML document for the preview iframe

- Import map in <head> resolves bare specifiers to the CDN
- Tailwind CDN loaded async
- Bundle inlined (import maps only apply to scripts in the document scope)
  and run through Babel standalone, which strips TS types and compiles JSX
- Global error handlers and a console interceptor post to the parent frame
"""

import json
import re
from string import Template
from typing import Optional

from livepreview.core.config import settings
from livepreview.services.bundler.wrapper import PREVIEW_ERROR_CHANNEL
from livepreview.services.preview.import_map import ImportMap


PREVIEW_CONSOLE_CHANNEL = "preview-console"
PREVIEW_READY_CHANNEL = "preview-ready"

_SCRIPT_CLOSE = re.compile(r"</script>", re.IGNORECASE)


def escape_for_script_tag(code: str) -> str:
    """Keep user code from closing the host <script> tag early"""
    return _SCRIPT_CLOSE.sub(r"<\\/script>", code)


PREVIEW_TEMPLATE = Template('''<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8" />
<meta name="viewport" content="width=device-width, initial-scale=1.0" />

<script type="importmap">
$import_map
</script>

<script src="$tailwind_src" async></script>
<script src="$babel_src"></script>

<style id="preview-css">
* { margin: 0; padding: 0; box-sizing: border-box; }
$css
</style>

<script>
function __hidePreview() {
  document.body.style.background = "#0a0a12";
  document.body.style.color = "transparent";
  var r = document.getElementById($mount_selector);
  if (r) r.style.display = "none";
}

window.onerror = function(message, source, lineno, colno, error) {
  __hidePreview();
  window.parent.postMessage({
    type: $error_channel,
    error: {
      message: String(message),
      source: source || "",
      line: lineno || 0,
      column: colno || 0,
      stack: error && error.stack ? error.stack : ""
    }
  }, "*");
};

window.addEventListener("unhandledrejection", function(event) {
  var reason = event.reason || {};
  __hidePreview();
  window.parent.postMessage({
    type: $error_channel,
    error: {
      message: String(reason.message || reason),
      stack: reason.stack || ""
    }
  }, "*");
});

(function() {
  var methods = ["log", "warn", "error", "info", "debug"];
  methods.forEach(function(method) {
    var original = console[method];
    console[method] = function() {
      original.apply(console, arguments);
      try {
        var args = [];
        for (var i = 0; i < arguments.length; i++) {
          var a = arguments[i];
          if (a instanceof Error) {
            args.push(a.message + "\\n" + (a.stack || ""));
          } else if (typeof a === "object" && a !== null) {
            try { args.push(JSON.stringify(a, null, 2)); }
            catch(e) { args.push(String(a)); }
          } else {
            args.push(String(a));
          }
        }
        window.parent.postMessage({
          type: $console_channel,
          level: method,
          args: args,
          timestamp: Date.now()
        }, "*");
      } catch(e) {}
    };
  });
})();

Babel.registerPreset("livepreview-tsx", {
  presets: [
    [Babel.availablePresets["typescript"], { allExtensions: true, isTSX: true }],
    [Babel.availablePresets["react"], { runtime: "automatic" }]
  ]
});
</script>
</head>
<body>
<div id=$mount_id></div>

<script type="text/babel" data-type="module" data-presets="livepreview-tsx">
$code

window.parent.postMessage({ type: $ready_channel }, "*");
</script>
</body>
</html>''')


def build_preview_html(
    code: str,
    css: str,
    import_map: ImportMap,
    mount_selector: Optional[str] = None,
) -> str:
    """Render the preview document for a successful bundle"""
    mount = mount_selector or settings.PREVIEW_MOUNT_SELECTOR
    return PREVIEW_TEMPLATE.substitute(
        import_map=escape_for_script_tag(json.dumps(import_map, indent=2)),
        tailwind_src=settings.PREVIEW_TAILWIND_CDN,
        babel_src=settings.PREVIEW_BABEL_CDN,
        css=css,
        mount_selector=json.dumps(mount),
        mount_id=json.dumps(mount),
        error_channel=json.dumps(PREVIEW_ERROR_CHANNEL),
        console_channel=json.dumps(PREVIEW_CONSOLE_CHANNEL),
        ready_channel=json.dumps(PREVIEW_READY_CHANNEL),
        code=escape_for_script_tag(code),
    )
