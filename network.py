# network.py
"""
Referral network aggregation.

Members live in up to three collections: ``channelpartners``, ``customers``
and the legacy ``users`` collection. A member registered as "Both" has one
document in each of the first two (same ``_id``), so every reader here merges
the collections and collapses duplicates before counting.

All functions take the database handle explicitly so they can be reused by
the HTTP routes and the maintenance scripts alike.
"""
import math
from collections import Counter
from datetime import datetime

import config
from db import CHANNEL_PARTNERS, CUSTOMERS, LEGACY_USERS

# Branch rows count the member's own referrals as level 2
FIRST_BRANCH_LEVEL = 2

MEMBER_FIELDS = {
    "name": 1,
    "display_name": 1,
    "mobile": 1,
    "user_type": 1,
    "introducer": 1,
    "introducer_name": 1,
    "introducer_mobile": 1,
    "created_at": 1,
}

_TYPE_ALIASES = {
    "cp": "CP",
    "channelpartner": "CP",
    "customer": "Customer",
    "both": "Both",
}


def max_level():
    return config.MAX_NETWORK_LEVEL


def normalize_user_type(value):
    """'channelpartner' / 'cp' / 'CP' -> 'CP', etc. Unknown values -> None."""
    if not value:
        return None
    return _TYPE_ALIASES.get(str(value).strip().lower())


def _sources(include_legacy):
    names = [CHANNEL_PARTNERS, CUSTOMERS]
    if include_legacy:
        names.append(LEGACY_USERS)
    return names


def _as_list(ids):
    if isinstance(ids, (list, tuple, set)):
        return list(ids)
    return [ids]


def _newest_first(members):
    return sorted(members, key=lambda m: m.get("created_at") or datetime.min, reverse=True)


def member_key(member):
    return member.get("mobile") or str(member["_id"])


def classify(member):
    collections = member.get("collections") or [member.get("source")]
    if CHANNEL_PARTNERS in collections and CUSTOMERS in collections:
        return "Both"
    stored = normalize_user_type(member.get("user_type"))
    if stored:
        return stored
    if CHANNEL_PARTNERS in collections:
        return "CP"
    # customers and untyped legacy users
    return "Customer"


# ===== Introducer graph reader =====
def find_referrals(database, introducer_ids, include_legacy=False):
    """Raw direct-referral records of one or many introducers, tagged with their source."""
    ids = _as_list(introducer_ids)
    if not ids:
        return []

    records = []
    for name in _sources(include_legacy):
        cursor = database[name].find({"introducer": {"$in": ids}}, MEMBER_FIELDS).sort("created_at", -1)
        for doc in cursor:
            doc["source"] = name
            records.append(doc)
    return records


def lookup_member(database, member_id, include_legacy=True):
    """Find a member in any collection (ChannelPartner > Customer > legacy User)."""
    records = []
    for name in _sources(include_legacy):
        doc = database[name].find_one({"_id": member_id}, MEMBER_FIELDS)
        if doc:
            doc["source"] = name
            records.append(doc)
    if not records:
        return None
    return dedupe_members(records)[0]


def all_members(database, include_legacy=True, query=None):
    records = []
    for name in _sources(include_legacy):
        for doc in database[name].find(query or {}, MEMBER_FIELDS):
            doc["source"] = name
            records.append(doc)
    return _newest_first(dedupe_members(records))


# ===== Deduplicator / classifier =====
def dedupe_members(records):
    """
    Merge records that describe the same person.

    Records are keyed by mobile number (falling back to the id). The
    ChannelPartner copy wins when a person appears in several collections;
    every merged member carries ``collections``, ``ids`` and ``member_type``.
    First-seen order is preserved.
    """
    merged = {}
    for rec in records:
        key = member_key(rec)
        current = merged.get(key)
        if current is None:
            current = dict(rec, collections=[], ids=[])
            merged[key] = current
        elif rec.get("source") == CHANNEL_PARTNERS and current.get("source") != CHANNEL_PARTNERS:
            current = dict(rec, collections=current["collections"], ids=current["ids"])
            merged[key] = current

        if rec.get("source") not in current["collections"]:
            current["collections"].append(rec.get("source"))
        if rec["_id"] not in current["ids"]:
            current["ids"].append(rec["_id"])

    members = list(merged.values())
    for m in members:
        m["member_type"] = classify(m)
    return members


# ===== Level expander =====
def expand_levels(database, root_id, depth, include_legacy=False):
    """
    Breadth-first walk below ``root_id``.

    Returns ``depth`` lists; list ``i`` holds the members reached through
    ``i + 1`` introducer links. A member is reported at most once, at the
    shallowest level it is reached, so cycles terminate.
    """
    seen_ids = set(_as_list(root_id))
    seen_keys = set()
    frontier = list(seen_ids)
    levels = []

    for _ in range(depth):
        found = []
        if frontier:
            records = [r for r in find_referrals(database, frontier, include_legacy) if r["_id"] not in seen_ids]
            for m in dedupe_members(records):
                if member_key(m) in seen_keys:
                    continue
                seen_keys.add(member_key(m))
                seen_ids.update(m["ids"])
                found.append(m)
        levels.append(_newest_first(found))
        frontier = [i for m in found for i in m["ids"]]

    return levels


def downline_ids(database, member_id, depth=None):
    """Every id below ``member_id`` (used to reject circular introducers)."""
    ids = set()
    for level in expand_levels(database, member_id, depth or max_level(), include_legacy=True):
        for m in level:
            ids.update(m["ids"])
    return ids


# ===== Aggregator =====
def count_member_types(members):
    counts = {"cp": 0, "customer": 0, "total": len(members)}
    for m in members:
        member_type = m.get("member_type") or classify(m)
        if member_type in ("CP", "Both"):
            counts["cp"] += 1
        if member_type in ("Customer", "Both"):
            counts["customer"] += 1
    return counts


def branch_levels(database, member_id, include_legacy=False):
    """Counts for levels 2..max_level() below a branch member, plus totals."""
    levels = expand_levels(database, member_id, max_level() - 1, include_legacy)

    result = {}
    total_cp = total_customer = grand_total = 0
    for offset, members in enumerate(levels):
        counts = count_member_types(members)
        result[f"level{offset + FIRST_BRANCH_LEVEL}"] = counts
        total_cp += counts["cp"]
        total_customer += counts["customer"]
        grand_total += counts["total"]

    result["total_cp"] = total_cp
    result["total_customer"] = total_customer
    result["grand_total"] = grand_total
    return result


def level_names():
    return [f"level{n}" for n in range(FIRST_BRANCH_LEVEL, max_level() + 1)]


def summarize(member):
    return {
        "id": member["_id"],
        "name": member.get("name"),
        "display_name": member.get("display_name"),
        "mobile": member.get("mobile"),
        "user_type": member.get("member_type") or classify(member),
        "join_date": member.get("created_at"),
    }


def _branch_row(database, member, is_root, include_legacy):
    row = summarize(member)
    row["is_root"] = is_root
    levels = branch_levels(database, member["_id"], include_legacy)
    row.update(levels)
    row["total_users"] = levels["grand_total"]
    return row


# ===== Network tables =====
def member_network(database, member_id, include_legacy=False):
    """Root branch plus one branch per direct referral, or None when the member is unknown."""
    root = lookup_member(database, member_id, include_legacy=include_legacy)
    if not root:
        return None

    directs = expand_levels(database, root["_id"], 1, include_legacy)[0]
    branches = [_branch_row(database, root, True, include_legacy)]
    branches.extend(_branch_row(database, m, False, include_legacy) for m in directs)

    return {
        "user": summarize(root),
        "branches": branches,
        "total_branches": len(branches),
    }


def admin_network(database, root_id=None):
    """Network tables for one root, or for every member who introduced someone."""
    if root_id is not None:
        root = lookup_member(database, root_id)
        roots = [root] if root else []
    else:
        introducer_ids = set()
        for name in _sources(True):
            introducer_ids.update(i for i in database[name].distinct("introducer") if i is not None)
        roots = all_members(database, query={"_id": {"$in": list(introducer_ids)}}) if introducer_ids else []

    names = level_names()
    grand_totals = {"level1": 0, **{n: 0 for n in names}, "total": 0}
    data = []

    for root in roots:
        directs = expand_levels(database, root["_id"], 1, include_legacy=True)[0]
        branches = [_branch_row(database, root, True, True)]
        branches.extend(_branch_row(database, m, False, True) for m in directs)

        entry = summarize(root)
        entry["is_root"] = True
        entry["branches"] = branches
        data.append(entry)

        grand_totals["level1"] += len(directs)
        for branch in branches:
            for n in names:
                grand_totals[n] += branch[n]["total"]
            grand_totals["total"] += branch["total_users"]

    return {"data": data, "grand_totals": grand_totals, "total_root_users": len(data)}


def users_at_level(database, branch_id, level, user_type=None, include_legacy=False):
    """
    Members at branch level ``level`` (2..max_level()) below ``branch_id``.

    ``user_type`` 'CP' keeps CP and Both members, 'Customer' keeps Customer
    and Both members; anything else keeps everybody.
    """
    if level < FIRST_BRANCH_LEVEL or level > max_level():
        raise ValueError(f"Level must be between {FIRST_BRANCH_LEVEL} and {max_level()}")

    members = expand_levels(database, branch_id, level - 1, include_legacy)[-1]
    wanted = normalize_user_type(user_type)
    if wanted == "CP":
        members = [m for m in members if m["member_type"] in ("CP", "Both")]
    elif wanted == "Customer":
        members = [m for m in members if m["member_type"] in ("Customer", "Both")]
    return members


def count_direct_referrals(database, member_ids, include_legacy=True):
    return len(dedupe_members(find_referrals(database, member_ids, include_legacy)))


def referral_counts(database, include_legacy=True):
    """Direct referral count per introducer id, over deduplicated members."""
    counts = Counter()
    for m in all_members(database, include_legacy):
        if m.get("introducer") is not None:
            counts[m["introducer"]] += 1
    return counts


# ===== Chains and trees =====
def referral_chain(database, member_id, max_depth=None, include_legacy=False):
    """Flat depth-first listing of the whole downline with the level of each member."""
    max_depth = max_depth or max_level()
    seen_ids = {member_id}
    chain = []

    def walk(introducer_ids, level, introducer_name):
        if level > max_depth:
            return
        records = [r for r in find_referrals(database, introducer_ids, include_legacy) if r["_id"] not in seen_ids]
        for m in _newest_first(dedupe_members(records)):
            if seen_ids.intersection(m["ids"]):
                continue
            seen_ids.update(m["ids"])
            name = m.get("display_name") or m.get("name")
            chain.append({
                "id": m["_id"],
                "name": name,
                "mobile": m.get("mobile"),
                "user_type": m["member_type"],
                "joined_date": m.get("created_at"),
                "level": level,
                "introducer_name": introducer_name if level > 1 else None,
            })
            walk(m["ids"], level + 1, name)

    walk([member_id], 1, None)

    return {
        "referral_chain": chain,
        "stats": {
            "direct_referrals": sum(1 for r in chain if r["level"] == 1),
            "total_referrals": len(chain),
        },
    }


def referral_tree(database, member_id, max_depth=5, include_legacy=True):
    """Nested downline tree plus per-level totals (keys '1'..str(max_depth))."""
    seen_ids = {member_id}
    level_totals = {str(n): 0 for n in range(1, max_depth + 1)}

    def build(parent_ids, level):
        if level > max_depth:
            return []
        records = [r for r in find_referrals(database, parent_ids, include_legacy) if r["_id"] not in seen_ids]
        nodes = []
        for m in _newest_first(dedupe_members(records)):
            if seen_ids.intersection(m["ids"]):
                continue
            seen_ids.update(m["ids"])
            level_totals[str(level)] += 1
            children = build(m["ids"], level + 1)
            node = summarize(m)
            node.update({
                "level": level,
                "direct_referral_count": count_direct_referrals(database, m["ids"], include_legacy),
                "children": children,
                "children_count": len(children),
            })
            nodes.append(node)
        return nodes

    tree = build([member_id], 1)
    return {
        "tree": tree,
        "level_totals": level_totals,
        "total_users": sum(level_totals.values()),
    }


# ===== Totals & ranking =====
def total_referrals(database, member_id, depth=None, include_legacy=True):
    levels = expand_levels(database, member_id, depth or max_level(), include_legacy)
    return sum(len(members) for members in levels)


def ranking(database, page=1, limit=10):
    page = max(page, 1)
    limit = max(limit, 1)

    rows = []
    for m in all_members(database):
        row = summarize(m)
        row["total_referrals"] = total_referrals(database, m["_id"])
        rows.append(row)

    rows.sort(key=lambda r: r["total_referrals"], reverse=True)
    for rank, row in enumerate(rows, start=1):
        row["rank"] = rank

    total = len(rows)
    total_pages = math.ceil(total / limit)
    skip = (page - 1) * limit

    return {
        "users": rows[skip:skip + limit],
        "pagination": {
            "current_page": page,
            "total_pages": total_pages,
            "total_users": total,
            "limit": limit,
            "has_next_page": page < total_pages,
            "has_prev_page": page > 1,
        },
    }


def top_introducers(database, limit=10):
    results = []
    for introducer_id, count in referral_counts(database).most_common():
        introducer = lookup_member(database, introducer_id)
        if not introducer:
            continue
        row = summarize(introducer)
        row["count"] = count
        results.append(row)
        if limit and len(results) >= limit:
            break
    return results
