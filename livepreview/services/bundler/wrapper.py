"""
Synthetic entry wrapper

When the entry point is a root component (App.tsx) rather than a
bootstrap file, the bundler mounts it through this generated module.

Template slots:
    module_path       - import path of the detected component module
    export_fallbacks  - JS expression binding the component from `_M`
    error_channel     - message type posted to the hosting frame
    mount_selector    - id of the DOM node to mount into
"""

import json
from string import Template
from typing import Sequence

from livepreview.core.config import settings


PREVIEW_ERROR_CHANNEL = "preview-error"

# Binding order: default export, conventional names, first function export
DEFAULT_EXPORT_ORDER = ("default", "App", "Main")


WRAPPER_TEMPLATE = Template('''
import { createRoot } from "react-dom/client";
import { Component } from "react";
import * as _M from "$module_path";

const App = $export_fallbacks;

class EB extends Component {
  constructor(props) { super(props); this.state = { error: null, info: null }; }
  static getDerivedStateFromError(error) { return { error }; }
  componentDidCatch(error, info) {
    window.parent.postMessage({
      type: $error_channel,
      error: { message: error.message, stack: error.stack }
    }, "*");
  }
  render() {
    if (this.state.error) {
      return (
        <div style={{padding:"24px",color:"#ff6b6b",fontFamily:"ui-monospace,monospace",fontSize:"13px",background:"#1a1a2e",minHeight:"100vh",overflow:"auto"}}>
          <div style={{marginBottom:"16px",fontSize:"15px",fontWeight:600,color:"#ff8a8a"}}>Runtime Error</div>
          <pre style={{whiteSpace:"pre-wrap",wordBreak:"break-word",margin:0,lineHeight:1.6,color:"#ff6b6b"}}>{this.state.error.message}</pre>
          <pre style={{whiteSpace:"pre-wrap",wordBreak:"break-word",margin:"12px 0 0",lineHeight:1.4,color:"#666",fontSize:"11px"}}>{this.state.error.stack}</pre>
        </div>
      );
    }
    return this.props.children;
  }
}

createRoot(document.getElementById($mount_selector)).render(<EB><App /></EB>);
''')


def export_fallback_expression(order: Sequence[str] = DEFAULT_EXPORT_ORDER) -> str:
    """JS expression that binds the first usable export of `_M`"""
    parts = [f"_M.{name}" for name in order]
    parts.append('Object.values(_M).find(v => typeof v === "function")')
    parts.append("(() => null)")
    return " || ".join(parts)


def render_wrapper(
    entry_file: str,
    export_order: Sequence[str] = DEFAULT_EXPORT_ORDER,
    error_channel: str = PREVIEW_ERROR_CHANNEL,
    mount_selector: str = None,
) -> str:
    """Render the wrapper module source for a root component file"""
    return WRAPPER_TEMPLATE.substitute(
        module_path=f"./{entry_file}",
        export_fallbacks=export_fallback_expression(export_order),
        error_channel=json.dumps(error_channel),
        mount_selector=json.dumps(mount_selector or settings.PREVIEW_MOUNT_SELECTOR),
    )
