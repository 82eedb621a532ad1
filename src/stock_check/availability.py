from __future__ import annotations

import re

from bs4 import BeautifulSoup
from bs4.element import Tag

from .models import CheckResult


TARGET_ELEMENT_ID = "add"

ADD_TO_CART_RE = re.compile(r"add\s*to\s*cart", re.IGNORECASE)

# Substring match against the joined class list, so "btn-soldout-v2" counts.
LOCKED_CLASS_MARKERS = ("disabled", "soldout", "locked", "unavailable")


def find_by_id(soup: BeautifulSoup, element_id: str) -> Tag | None:
    el = soup.find(id=element_id)
    return el if isinstance(el, Tag) else None


def _attr_str(el: Tag, name: str) -> str:
    value = el.get(name)
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return " ".join(str(v) for v in value)
    return str(value)


def _has_disabled_state(el: Tag) -> bool:
    if el.has_attr("disabled"):
        return True
    # Covers form controls inside a disabled <fieldset>.
    return bool(el.css.match(":disabled"))


def is_element_locked(el: Tag | None) -> bool:
    if el is None:
        return True
    if _has_disabled_state(el):
        return True
    if _attr_str(el, "aria-disabled").lower() == "true":
        return True
    class_str = _attr_str(el, "class").lower()
    if any(marker in class_str for marker in LOCKED_CLASS_MARKERS):
        return True
    return _attr_str(el, "data-locked").lower() == "true"


def says_add_to_cart(text: str) -> bool:
    return ADD_TO_CART_RE.search(text or "") is not None


def evaluate_availability(html: str, element_id: str = TARGET_ELEMENT_ID) -> CheckResult:
    soup = BeautifulSoup(html or "", "html.parser")
    el = find_by_id(soup, element_id)
    text = el.get_text().strip() if el is not None else ""
    return CheckResult(
        exists=el is not None,
        text=text,
        says_add_to_cart=says_add_to_cart(text),
        locked=is_element_locked(el),
    )
