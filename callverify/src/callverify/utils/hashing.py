"""
SHA-256 hashing and shingle fingerprints.

content hashes are always taken over normalized text so cosmetic re-scrapes
collide; raw HTML hashes are taken over the untouched page and serve only as
forensic proof of what was fetched.
"""
import hashlib
import json
import re
import unicodedata
from typing import Dict, Iterable, List, Optional, Tuple

_HORIZONTAL_WS_RE = re.compile(r"[\t ]+")
_NEWLINES_RE = re.compile(r"\n+")


def sha256(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def normalize_content_for_hashing(content: str) -> str:
    text = unicodedata.normalize("NFKC", content)
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _HORIZONTAL_WS_RE.sub(" ", text)
    text = _NEWLINES_RE.sub("\n", text)
    return text.strip()


def generate_content_hash(content: str) -> str:
    return sha256(normalize_content_for_hashing(content))


def generate_raw_html_hash(html: str) -> str:
    return sha256(html)


def generate_transcript_id(ticker: str, quarter: str, year: int, date: str) -> str:
    """Deterministic id: {TICKER}-{Q}-{year}-{8 hex chars of the date hash}."""
    base = f"{ticker.upper()}-{quarter.upper()}-{year}"
    digest = sha256(f"{base}-{date}")[:8]
    return f"{base}-{digest}"


def hashes_match(a: Optional[str], b: Optional[str]) -> bool:
    if not a or not b:
        return False
    return a.lower() == b.lower()


def check_duplicate(content_hash: str, existing_hashes: Iterable[str]) -> Tuple[bool, Optional[str]]:
    """Return (is_duplicate, matching_hash)."""
    for existing in existing_hashes:
        if hashes_match(content_hash, existing):
            return True, existing
    return False, None


def generate_fingerprint(content: str, shingle_size: int = 5, num_hashes: int = 100) -> List[str]:
    """
    Min-hash style sketch of the document.

    Builds the set of overlapping `shingle_size`-word windows, hashes each,
    and keeps the `num_hashes` lexicographically smallest digests. Documents
    shorter than one shingle get a single whole-document hash.
    """
    normalized = normalize_content_for_hashing(content)
    words = normalized.split()

    if len(words) < shingle_size:
        return [sha256(normalized)]

    shingles = {
        " ".join(words[i:i + shingle_size])
        for i in range(len(words) - shingle_size + 1)
    }
    return sorted(sha256(s) for s in shingles)[:num_hashes]


def fingerprint_similarity(fp1: Iterable[str], fp2: Iterable[str]) -> float:
    """Jaccard similarity of two fingerprints (1.0 = identical)."""
    set1, set2 = set(fp1), set(fp2)
    union = len(set1 | set2)
    if union == 0:
        return 1.0
    return len(set1 & set2) / union


def check_near_duplicate(
    fingerprint: List[str],
    existing: Dict[str, List[str]],
    threshold: float = 0.8,
) -> Dict[str, object]:
    """
    Scan stored fingerprints for the closest match.
    Returns is_near_duplicate, matching_id (only above threshold),
    closest_id and similarity.
    """
    best_id = None
    best = 0.0
    for record_id, other in existing.items():
        similarity = fingerprint_similarity(fingerprint, other)
        if best_id is None or similarity > best:
            best = similarity
            best_id = record_id

    is_near = best >= threshold
    return {
        "is_near_duplicate": is_near,
        "matching_id": best_id if is_near else None,
        "closest_id": best_id,
        "similarity": best,
    }


def generate_audit_hash(
    timestamp: str,
    source_url: str,
    content_hash: Optional[str],
    validation_results: str,
    decision: str,
) -> str:
    """Tamper-evidence hash over the decision-relevant parts of an audit entry."""
    canonical = json.dumps(
        {
            "timestamp": timestamp,
            "source_url": source_url,
            "content_hash": content_hash,
            "validation_results": validation_results,
            "decision": decision,
        },
        sort_keys=True,
    )
    return sha256(canonical)
