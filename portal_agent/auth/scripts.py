"""
Login Page Scripts
==================
JavaScript injected into the portal's login page.

Every script is a function expression evaluated with a single JSON
argument.  Scripts only *observe* (snapshots, probes) or *act on an index
chosen in Python* (fill, submit).  All heuristic decisions live in
``discovery.py`` so they can be tested against recorded snapshots.

Visibility is ``offsetParent !== null``, matching what the portal's own
layout considers rendered.
"""

# Readiness probe. Arg: identity hints (list of lowercase substrings)
READINESS_PROBE = """
(hints) => {
    const visible = Array.from(document.querySelectorAll('input'))
        .filter(i => i.offsetParent !== null);
    const hinted = (value) => {
        const v = (value || '').toLowerCase();
        return hints.some(h => v.includes(h));
    };
    const hasUserField = visible.some(i =>
        i.type !== 'password' && (i.type === 'text' || hinted(i.name) || hinted(i.id))
    );
    const hasPasswordField = visible.some(i => i.type === 'password');
    return {
        found: hasUserField && hasPasswordField,
        visibleInputCount: visible.length,
        hasUserField: hasUserField,
        hasPasswordField: hasPasswordField,
    };
}
"""

# All inputs in document order, no arg
INPUT_SNAPSHOT = """
() => Array.from(document.querySelectorAll('input')).map((el, index) => ({
    index: index,
    type: (el.type || '').toLowerCase(),
    name: el.name || '',
    id: el.id || '',
    placeholder: el.placeholder || '',
    visible: el.offsetParent !== null,
}))
"""

# Fill credentials. Arg: {userIndex, passwordIndex, userId, secret}
FILL_CREDENTIALS = """
(args) => {
    const inputs = Array.from(document.querySelectorAll('input'));
    const user = inputs[args.userIndex];
    const password = inputs[args.passwordIndex];
    if (!user || !password) {
        return { filled: false };
    }
    user.value = args.userId;
    password.value = args.secret;
    for (const el of [user, password]) {
        for (const type of ['input', 'change', 'keyup', 'blur']) {
            let evt = null;
            try {
                evt = type === 'keyup'
                    ? new KeyboardEvent('keyup', { bubbles: true })
                    : new Event(type, { bubbles: true });
            } catch (e) {
                continue;
            }
            el.dispatchEvent(evt);
        }
    }
    return { filled: true };
}
"""

# Clickable controls + enclosing form info. Arg: {selector, passwordIndex}
CONTROL_SNAPSHOT = """
(args) => {
    const inputs = Array.from(document.querySelectorAll('input'));
    const anchor = inputs[args.passwordIndex] || null;
    const form = anchor ? anchor.closest('form') : null;
    const controls = Array.from(document.querySelectorAll(args.selector));
    return {
        hasForm: !!form,
        controls: controls.map((el, index) => ({
            index: index,
            tag: el.tagName.toLowerCase(),
            type: (el.getAttribute('type') || '').toLowerCase(),
            text: (el.textContent || '').trim().substring(0, 80),
            value: (el.value || '').toString(),
            title: el.getAttribute('title') || '',
            visible: el.offsetParent !== null,
            inForm: !!form && form.contains(el),
        })),
    };
}
"""

# Submit. Arg: {mode: 'click'|'form', index, selector, passwordIndex, delayMs}
# The click is deferred so this script returns before navigation starts.
SUBMIT_LOGIN = """
(args) => {
    if (args.mode === 'form') {
        const inputs = Array.from(document.querySelectorAll('input'));
        const anchor = inputs[args.passwordIndex];
        const form = anchor ? anchor.closest('form') : null;
        if (!form) {
            return { submitted: false };
        }
        setTimeout(() => form.submit(), args.delayMs);
        return { submitted: true, method: 'form_submit' };
    }
    const control = Array.from(document.querySelectorAll(args.selector))[args.index];
    if (!control) {
        return { submitted: false };
    }
    setTimeout(() => control.click(), args.delayMs);
    return { submitted: true, method: 'click' };
}
"""

# Post-login page check. Arg: error marker selectors
PAGE_CHECK = """
(selectors) => {
    const el = document.querySelector(selectors.join(', '));
    const body = document.body ? (document.body.textContent || '') : '';
    return {
        url: window.location.href,
        hasError: !!el,
        errorText: el ? (el.textContent || '').trim().substring(0, 200) : null,
        title: document.title,
        bodyText: body.trim().substring(0, 200),
    };
}
"""
