"""
List View Scripts
=================
JavaScript injected into the portal's list view.

The request-history widget lives in an iframe attached to the tab whose
menu ``<li>`` carries ``title`` / ``name`` equal to the menu label; the
tab's ``aria-controls`` attribute names the iframe element.  Every
sub-document script re-resolves that frame through ``_FRAME_LOOKUP``
because the widget may re-attach between calls.

Sub-document scripts return ``{status: 'ok' | 'no_menu' | 'no_tab' | 'no_frame', ...}``.
"""

_FRAME_LOOKUP = """
    const frameFor = (label) => {
        const li = Array.from(document.querySelectorAll('li')).find(el =>
            el.getAttribute('title') === label || el.getAttribute('name') === label
        );
        if (!li) {
            return { status: 'no_menu' };
        }
        const tabId = li.getAttribute('aria-controls');
        if (!tabId) {
            return { status: 'no_tab' };
        }
        const frame = document.getElementById(tabId);
        if (!frame || !frame.contentWindow) {
            return { status: 'no_frame', tabId: tabId };
        }
        return {
            status: 'ok',
            tabId: tabId,
            win: frame.contentWindow,
            doc: frame.contentDocument,
        };
    };
"""


def _in_frame(body: str) -> str:
    """Wrap *body* in a function that resolves ``ctx`` for ``args.label`` first."""
    return (
        "(args) => {\n"
        + _FRAME_LOOKUP
        + """
    const ctx = frameFor(args.label);
    if (ctx.status !== 'ok') {
        return { status: ctx.status, tabId: ctx.tabId || null };
    }
"""
        + body
        + "\n}"
    )


# Activate the menu entry. Arg: {label, selector}
ACTIVATE_MENU = """
(args) => {
    const matches = Array.from(document.querySelectorAll(args.selector)).filter(el => {
        const text = (el.textContent || '').trim();
        const title = el.getAttribute('title') || '';
        const name = el.getAttribute('name') || '';
        return title.includes(args.label) || name.includes(args.label) || text === args.label;
    });
    const target = matches.find(el => el.offsetParent !== null) || matches[0];
    if (!target) {
        return { activated: false, candidates: 0 };
    }
    target.click();
    return { activated: true, tag: target.tagName.toLowerCase(), candidates: matches.length };
}
"""

# Resolve the sub-document. Arg: {label}
RESOLVE_SUB_DOCUMENT = _in_frame("""
    return { status: 'ok', tabId: ctx.tabId };
""")

# Push search settings through the in-page config API
# arg: {label, namespace, method, settings: [[key, value], ...]}
CONFIGURE_SEARCH = _in_frame("""
    const ns = ctx.win[args.namespace];
    if (!ns || typeof ns[args.method] !== 'function') {
        return { status: 'ok', apiAvailable: false };
    }
    for (const [key, value] of args.settings) {
        ns[args.method](key, value);
    }
    return { status: 'ok', apiAvailable: true, applied: args.settings.length };
""")

# Check the "search by handler" toggle. Arg: {label, name}
CHECK_TOGGLE = _in_frame("""
    const box = Array.from(ctx.doc.querySelectorAll('input')).find(el => el.name === args.name);
    if (!box) {
        return { status: 'ok', toggled: false };
    }
    box.checked = true;
    box.dispatchEvent(new ctx.win.Event('change', { bubbles: true }));
    return { status: 'ok', toggled: true };
""")

# Inventory of possible search triggers. Arg: {label, functionNames, selector}
TRIGGER_PROBE = _in_frame("""
    const functions = args.functionNames.filter(n => typeof ctx.win[n] === 'function');
    const controls = Array.from(ctx.doc.querySelectorAll(args.selector)).map((el, index) => ({
        index: index,
        tag: el.tagName.toLowerCase(),
        text: (el.textContent || '').trim().substring(0, 80),
        value: (el.value || '').toString(),
        title: el.getAttribute('title') || '',
        id: el.id || '',
        hasInlineHandler: !!el.getAttribute('onclick'),
        visible: el.offsetParent !== null,
    }));
    return { status: 'ok', functions: functions, controls: controls };
""")

# Fire one trigger. Arg: {label, kind: 'function'|'control', name, index, selector}
INVOKE_TRIGGER = _in_frame("""
    if (args.kind === 'function') {
        try {
            ctx.win[args.name]();
            return { status: 'ok', invoked: true, via: 'function' };
        } catch (e) {
            return { status: 'ok', invoked: false, error: String(e && e.message || e) };
        }
    }
    const el = Array.from(ctx.doc.querySelectorAll(args.selector))[args.index];
    if (!el) {
        return { status: 'ok', invoked: false, error: 'control vanished' };
    }
    const inline = el.getAttribute('onclick');
    if (inline) {
        try {
            new ctx.win.Function(inline).call(el);
            return { status: 'ok', invoked: true, via: 'inline' };
        } catch (e) {
            // fall through to synthetic events
        }
    }
    for (const type of ['mousedown', 'mouseup', 'click']) {
        el.dispatchEvent(new ctx.win.MouseEvent(type, { bubbles: true }));
    }
    el.click();
    return { status: 'ok', invoked: true, via: 'events' };
""")

# Harvest the grid. Arg: {label, grid, accessor}
HARVEST_GRID = _in_frame("""
    const grid = ctx.win[args.grid];
    if (!grid || typeof grid[args.accessor] !== 'function') {
        return { status: 'ok', available: false, rows: [] };
    }
    const rows = grid[args.accessor]() || [];
    return { status: 'ok', available: true, rows: JSON.parse(JSON.stringify(rows)) };
""")
