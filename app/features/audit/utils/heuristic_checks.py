"""
Structural accessibility checks over raw markup.

Each check is a pure function of the parsed document and returns either None
or a single CheckResult (one issue plus its score penalty). Checks never look
at each other's output, so HEURISTIC_CHECKS can be reordered or extended
without changing any individual result.
"""
import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from bs4 import BeautifulSoup, Tag

from app.features.audit.schemas.audit import Issue, Severity

INLINE_COLOR_LIMIT = 5
_COLOR_DECLARATION = re.compile(r"(?:^|;)\s*color\s*:", re.IGNORECASE)
_UNLABELED_EXEMPT_TYPES = {"hidden"}


@dataclass(frozen=True)
class CheckResult:
    issue: Issue
    penalty: int


Check = Callable[[BeautifulSoup], Optional[CheckResult]]


def _snippet(tag: Tag) -> str:
    return str(tag)


def _has_text_attr(tag: Tag, name: str) -> bool:
    value = tag.get(name)
    return isinstance(value, str) and bool(value.strip())


def check_missing_alt(soup: BeautifulSoup) -> Optional[CheckResult]:
    offending = [img for img in soup.find_all("img") if not img.has_attr("alt")]
    if not offending:
        return None
    count = len(offending)
    return CheckResult(
        issue=Issue(
            code="missing-alt",
            severity=Severity.ERROR,
            message=f"{count} image(s) missing alt attribute (WCAG 1.1.1)",
            selector="img",
            context=_snippet(offending[0]),
        ),
        penalty=3 * count,
    )


def _is_empty_link(anchor: Tag) -> bool:
    if anchor.get_text(strip=True):
        return False
    if any(_has_text_attr(anchor, name) for name in ("aria-label", "aria-labelledby", "title")):
        return False
    return not any(_has_text_attr(img, "alt") for img in anchor.find_all("img"))


def check_empty_links(soup: BeautifulSoup) -> Optional[CheckResult]:
    offending = [a for a in soup.find_all("a") if _is_empty_link(a)]
    if not offending:
        return None
    count = len(offending)
    return CheckResult(
        issue=Issue(
            code="empty-link",
            severity=Severity.ERROR,
            message=f"{count} link(s) with no text content (WCAG 2.4.4)",
            selector="a",
            context=_snippet(offending[0]),
        ),
        penalty=4 * count,
    )


def check_missing_title(soup: BeautifulSoup) -> Optional[CheckResult]:
    title = soup.find("title")
    if title is not None and title.get_text(strip=True):
        return None
    return CheckResult(
        issue=Issue(
            code="missing-title",
            severity=Severity.ERROR,
            message="Document has no <title> element (WCAG 2.4.2)",
            selector="head",
            context="",
        ),
        penalty=10,
    )


def check_missing_lang(soup: BeautifulSoup) -> Optional[CheckResult]:
    root = soup.find("html")
    if root is not None and _has_text_attr(root, "lang"):
        return None
    return CheckResult(
        issue=Issue(
            code="missing-lang",
            severity=Severity.ERROR,
            message="The <html> element has no lang attribute (WCAG 3.1.1)",
            selector="html",
            context="",
        ),
        penalty=5,
    )


def check_heading_structure(soup: BeautifulSoup) -> Optional[CheckResult]:
    headings = soup.find_all("h1")
    if len(headings) == 1:
        return None
    if not headings:
        return CheckResult(
            issue=Issue(
                code="missing-h1",
                severity=Severity.WARNING,
                message="Page has no top-level <h1> heading (WCAG 1.3.1)",
                selector="h1",
                context="",
            ),
            penalty=8,
        )
    return CheckResult(
        issue=Issue(
            code="multiple-h1",
            severity=Severity.WARNING,
            message=f"Page has {len(headings)} top-level <h1> headings (WCAG 1.3.1)",
            selector="h1",
            context=_snippet(headings[1]),
        ),
        penalty=3,
    )


def _is_unlabeled_input(field: Tag) -> bool:
    field_type = (field.get("type") or "text").strip().lower()
    if field_type in _UNLABELED_EXEMPT_TYPES:
        return False
    return not (_has_text_attr(field, "id") or _has_text_attr(field, "aria-label"))


def check_unlabeled_inputs(soup: BeautifulSoup) -> Optional[CheckResult]:
    offending = [field for field in soup.find_all("input") if _is_unlabeled_input(field)]
    if not offending:
        return None
    count = len(offending)
    return CheckResult(
        issue=Issue(
            code="unlabeled-input",
            severity=Severity.ERROR,
            message=f"{count} form input(s) without id or aria-label (WCAG 1.3.1, 4.1.2)",
            selector="input",
            context=_snippet(offending[0]),
        ),
        penalty=4 * count,
    )


def check_inline_colors(soup: BeautifulSoup) -> Optional[CheckResult]:
    declarations = sum(
        len(_COLOR_DECLARATION.findall(tag["style"]))
        for tag in soup.find_all(style=True)
    )
    if declarations <= INLINE_COLOR_LIMIT:
        return None
    return CheckResult(
        issue=Issue(
            code="excessive-inline-color",
            severity=Severity.WARNING,
            message=f"{declarations} inline color declarations; contrast cannot be managed centrally (WCAG 1.4.3)",
            selector="[style]",
            context="",
        ),
        penalty=5,
    )


HEURISTIC_CHECKS: Tuple[Check, ...] = (
    check_missing_alt,
    check_empty_links,
    check_missing_title,
    check_missing_lang,
    check_heading_structure,
    check_unlabeled_inputs,
    check_inline_colors,
)


def run_checks(markup: str, checks: Tuple[Check, ...] = HEURISTIC_CHECKS) -> Tuple[List[Issue], int]:
    """Apply every check to `markup`; returns (issues in check order, score clamped to 0..100)."""
    soup = BeautifulSoup(markup, "html.parser")
    results = [result for result in (check(soup) for check in checks) if result is not None]
    score = 100 - sum(result.penalty for result in results)
    return [result.issue for result in results], max(0, min(100, score))
