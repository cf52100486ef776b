from tabulate import tabulate

import network
from db import db, CHANNEL_PARTNERS, CUSTOMERS, LEGACY_USERS

SAMPLE_SIZE = 5


def _introducer_collection(database, introducer_id):
    for name in (CHANNEL_PARTNERS, CUSTOMERS, LEGACY_USERS):
        if database[name].find_one({"_id": introducer_id}, {"_id": 1}):
            return name
    return None


def verify_migration(database=db, mobile=None):
    """Collection counts, introducer reference check and an optional per-member referral count."""
    report = {
        "counts": {name: database[name].count_documents({}) for name in (LEGACY_USERS, CHANNEL_PARTNERS, CUSTOMERS)},
        "valid_references": 0,
        "broken_references": [],
        "sample": [],
        "member": None,
    }

    for doc in database[CHANNEL_PARTNERS].find({"introducer": {"$ne": None}}).sort("created_at", -1):
        if _introducer_collection(database, doc["introducer"]):
            report["valid_references"] += 1
        else:
            report["broken_references"].append({"id": doc["_id"], "name": doc.get("name")})

    for doc in database[CHANNEL_PARTNERS].find().sort("created_at", -1).limit(SAMPLE_SIZE):
        report["sample"].append(doc)

    if mobile:
        member = next(iter(network.all_members(database, query={"mobile": mobile})), None)
        if member:
            report["member"] = {
                "summary": network.summarize(member),
                "referrals_by_collection": {
                    name: database[name].count_documents({"introducer": {"$in": member["ids"]}})
                    for name in (CHANNEL_PARTNERS, CUSTOMERS, LEGACY_USERS)
                },
            }

    return report


if __name__ == "__main__":
    import sys

    report = verify_migration(mobile=sys.argv[1] if len(sys.argv) > 1 else None)

    print(tabulate(report["counts"].items(), headers=["Collection", "Documents"], tablefmt="grid"))
    if not report["counts"][CHANNEL_PARTNERS]:
        print("⚠️  channelpartners is empty, run migrate_users.py first.")

    print(tabulate(
        [[d.get("name") or d.get("display_name"), d.get("mobile"), d.get("user_type"), d.get("introducer_name") or "None"]
         for d in report["sample"]],
        headers=["Name", "Mobile", "User Type", "Introducer"],
        tablefmt="grid",
    ))

    print(f"Introducer references: {report['valid_references']} valid, {len(report['broken_references'])} broken")
    for broken in report["broken_references"]:
        print(f"❌ {broken['name']} ({broken['id']}) -> introducer not found")

    if report["member"]:
        print(tabulate(report["member"]["referrals_by_collection"].items(),
                       headers=["Collection", "Direct referrals"], tablefmt="grid"))
