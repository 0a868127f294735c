"""
Merge partially-populated SourceRecords into one CanonicalProduct.

Records are first put into source-priority order, so the result does not
depend on the order in which concurrent sources answered.

  name, description   longest non-empty value (tie -> higher priority)
  brand, category     first non-empty value in priority order
  suggested_price     first non-null value in priority order
  images              concatenated, deduped by URL, exactly one primary
  identifiers         union, deduped by (type, value)
"""

from typing import Dict, List, Optional, Sequence

from shopscan.core.errors import PreconditionViolation
from shopscan.schemas.products import CanonicalProduct, ImageRef, ProductIdentifier, SourceRecord


def _priority_order(records: Sequence[SourceRecord], source_priority: Sequence[str]) -> List[SourceRecord]:
    rank = {tag: i for i, tag in enumerate(source_priority)}
    unknown = len(rank)
    return sorted(
        records,
        key=lambda r: (rank.get(r.source_tag, unknown), r.source_tag, r.model_dump_json()),
    )


def _text(value: Optional[str]) -> str:
    return (value or "").strip()


def _longest(values: List[str]) -> str:
    best = ""
    for v in values:
        if len(v) > len(best):
            best = v
    return best


def _first(values: List[str]) -> str:
    for v in values:
        if v:
            return v
    return ""


def merge_images(ordered: Sequence[SourceRecord]) -> List[ImageRef]:
    merged: Dict[str, ImageRef] = {}
    primary_url: Optional[str] = None

    for record in ordered:
        for image in record.images:
            url = _text(image.url)
            if not url:
                continue
            if url not in merged:
                merged[url] = ImageRef(url=url, is_primary=False)
            if image.is_primary and primary_url is None:
                primary_url = url

    images = list(merged.values())
    if images:
        if primary_url is None:
            primary_url = images[0].url
        for image in images:
            image.is_primary = image.url == primary_url
    return images


def merge_identifiers(ordered: Sequence[SourceRecord]) -> List[ProductIdentifier]:
    seen = set()
    out: List[ProductIdentifier] = []
    for record in ordered:
        for ident in record.identifiers:
            key = (ident.type, ident.value)
            if key not in seen:
                seen.add(key)
                out.append(ident)
    return out


def merge_records(
    records: Sequence[SourceRecord],
    source_priority: Sequence[str] = (),
) -> CanonicalProduct:
    if not records:
        raise PreconditionViolation("merge_records() requires at least one SourceRecord")

    ordered = _priority_order(records, source_priority)

    suggested_price = None
    for r in ordered:
        if r.suggested_price is not None:
            suggested_price = r.suggested_price
            break

    contributing: List[str] = []
    for r in ordered:
        if not r.is_empty() and r.source_tag not in contributing:
            contributing.append(r.source_tag)

    return CanonicalProduct(
        name=_longest([_text(r.name) for r in ordered]),
        brand=_first([_text(r.brand) for r in ordered]),
        category=_first([_text(r.category) for r in ordered]),
        description=_longest([_text(r.description) for r in ordered]),
        images=merge_images(ordered),
        identifiers=merge_identifiers(ordered),
        suggested_price=suggested_price,
        contributing_sources=contributing,
    )
