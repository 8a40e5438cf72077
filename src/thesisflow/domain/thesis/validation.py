"""Field validation for thesis title and keywords"""

from typing import Any, Dict, Iterable, List, Optional, Union

from .errors import ThesisValidationError

MAX_KEYWORD_LENGTH = 100

EDITABLE_FIELDS = frozenset({"title", "abstract", "keywords"})


def normalize_keywords(raw: Union[None, str, Iterable[Any]]) -> Optional[List[Any]]:
    """Turn a keyword payload into a list.

    Clients may send a list or a single comma-separated string
    ("ml, vision"). Entries are stripped but not de-duplicated; validation
    of the individual entries happens in validate_keywords.

    Example:
        >>> normalize_keywords("ml, vision ,ml")
        ['ml', 'vision', 'ml']
        >>> normalize_keywords(None) is None
        True
        >>> normalize_keywords("")
        []
    """
    if raw is None:
        return None
    if isinstance(raw, str):
        if not raw.strip():
            return []
        return [part.strip() for part in raw.split(",")]
    return [k.strip() if isinstance(k, str) else k for k in raw]


def title_errors(title: Any) -> List[Dict[str, str]]:
    if not isinstance(title, str) or not title.strip():
        return [{"field": "title", "message": "Title must not be empty"}]
    return []


def keyword_errors(keywords: Any) -> List[Dict[str, str]]:
    if keywords is None:
        return []
    if isinstance(keywords, str) or not isinstance(keywords, (list, tuple)):
        return [{"field": "keywords", "message": "Keywords must be a list of strings"}]

    errors = []
    for index, keyword in enumerate(keywords):
        field = f"keywords[{index}]"
        if not isinstance(keyword, str):
            errors.append({"field": field, "message": "Keyword must be a string"})
        elif not keyword.strip():
            errors.append({"field": field, "message": "Keyword must not be empty"})
        elif len(keyword) > MAX_KEYWORD_LENGTH:
            errors.append({
                "field": field,
                "message": f"Keyword exceeds {MAX_KEYWORD_LENGTH} characters",
            })
    return errors


def validate_new_thesis(title: Any, keywords: Any, student_ref: Any, supervisor_ref: Any) -> None:
    """Validate the fields supplied when a thesis is created.

    Raises:
        ThesisValidationError: With one entry per offending field
    """
    errors = title_errors(title) + keyword_errors(keywords)
    for field, value in (("student_ref", student_ref), ("supervisor_ref", supervisor_ref)):
        if not isinstance(value, str) or not value.strip():
            errors.append({"field": field, "message": f"{field} is required"})
    if errors:
        raise ThesisValidationError(errors)


def validate_patch(patch: Dict[str, Any]) -> Dict[str, Any]:
    """Validate an edit patch and return the cleaned values.

    Only title, abstract and keywords may be patched. Title is stored
    trimmed; keywords are stored stripped, in the given order.

    Raises:
        ThesisValidationError: If the patch is empty, names an immutable
            field, or carries invalid values
    """
    if not patch:
        raise ThesisValidationError([{"field": "patch", "message": "Nothing to update"}])

    errors: List[Dict[str, str]] = []
    for field in sorted(set(patch) - EDITABLE_FIELDS):
        errors.append({"field": field, "message": "Field cannot be modified"})

    cleaned: Dict[str, Any] = {}
    if "title" in patch:
        errors.extend(title_errors(patch["title"]))
        if isinstance(patch["title"], str):
            cleaned["title"] = patch["title"].strip()
    if "abstract" in patch:
        abstract = patch["abstract"]
        if abstract is not None and not isinstance(abstract, str):
            errors.append({"field": "abstract", "message": "Abstract must be text"})
        cleaned["abstract"] = abstract
    if "keywords" in patch:
        keywords = patch["keywords"]
        if keywords is None:
            keywords = []
        errors.extend(keyword_errors(keywords))
        if not errors:
            cleaned["keywords"] = [k.strip() for k in keywords]

    if errors:
        raise ThesisValidationError(errors)
    return cleaned
