"""In-page scripts evaluated through Runtime.evaluate. Each returns a JSON-serialisable value."""

import json

from desk_agent.dom.views import MAX_SELECTOR_DEPTH, MAX_SNAPSHOT_NODES, MAX_TEXT_LENGTH

SNAPSHOT_SCRIPT = f"""
(() => {{
	const MAX_NODES = {MAX_SNAPSHOT_NODES};
	const MAX_TEXT = {MAX_TEXT_LENGTH};
	const MAX_DEPTH = {MAX_SELECTOR_DEPTH};

	const selectorFor = (el) => {{
		const parts = [];
		let current = el;
		while (current && current.nodeType === Node.ELEMENT_NODE && parts.length < MAX_DEPTH) {{
			const tag = current.tagName.toLowerCase();
			if (current.id) {{
				parts.unshift(tag + '#' + CSS.escape(current.id));
				break;
			}}
			let index = 1;
			let sibling = current.previousElementSibling;
			while (sibling) {{
				if (sibling.tagName === current.tagName) index++;
				sibling = sibling.previousElementSibling;
			}}
			parts.unshift(tag + ':nth-of-type(' + index + ')');
			current = current.parentElement;
		}}
		return parts.join(' > ');
	}};

	const nodes = [];
	for (const el of document.querySelectorAll('*')) {{
		if (nodes.length >= MAX_NODES) break;
		const rect = el.getBoundingClientRect();
		if (rect.width < 1 && rect.height < 1) continue;
		const text = (el.innerText || el.textContent || '').replace(/\\s+/g, ' ').trim().slice(0, MAX_TEXT);
		nodes.push({{
			id: nodes.length,
			tag: el.tagName.toLowerCase(),
			text: text,
			role: el.getAttribute('role'),
			ariaLabel: el.getAttribute('aria-label'),
			href: el.getAttribute('href'),
			selector: selectorFor(el),
			rect: {{ x: rect.x, y: rect.y, width: rect.width, height: rect.height }},
		}});
	}}
	return nodes;
}})()
"""

_ACTION_FUNCTION = """
(selector, action, text) => {
	let el = null;
	try {
		el = document.querySelector(selector);
	} catch (e) {
		el = null;
	}
	if (!el) return { ok: false, error: 'selector not found' };

	if (action === 'click') {
		el.scrollIntoView({ block: 'center', inline: 'center', behavior: 'instant' });
		el.click();
		return { ok: true };
	}

	if (action === 'type') {
		if (typeof el.value !== 'string') return { ok: false, error: 'element is not input-like' };
		const proto = Object.getPrototypeOf(el);
		const descriptor = Object.getOwnPropertyDescriptor(proto, 'value');
		if (descriptor && descriptor.set) {
			descriptor.set.call(el, text);
		} else {
			el.value = text;
		}
		el.dispatchEvent(new Event('input', { bubbles: true }));
		el.dispatchEvent(new Event('change', { bubbles: true }));
		return { ok: true };
	}

	return { ok: false, error: 'unsupported action' };
}
"""


def build_action_script(selector: str, action: str, text: str | None) -> str:
	"""Return an expression calling the action function with its arguments embedded as JSON literals."""
	return f'({_ACTION_FUNCTION.strip()})({json.dumps(selector)}, {json.dumps(action)}, {json.dumps(text or "")})'
