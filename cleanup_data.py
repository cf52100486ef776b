from tabulate import tabulate

from db import db, CHANNEL_PARTNERS, CUSTOMERS, LEGACY_USERS


def counts(database=db):
    return {name: database[name].count_documents({}) for name in (LEGACY_USERS, CHANNEL_PARTNERS, CUSTOMERS)}


def cleanup_data(database=db):
    """Drop legacy users already migrated to channelpartners and type the rest as Customer."""
    cp_ids = [doc["_id"] for doc in database[CHANNEL_PARTNERS].find({}, {"_id": 1})]
    removed = 0
    if cp_ids:
        removed = database[LEGACY_USERS].delete_many({"_id": {"$in": cp_ids}}).deleted_count

    typed = database[LEGACY_USERS].update_many(
        {"user_type": {"$exists": False}},
        {"$set": {"user_type": "Customer"}},
    ).modified_count

    return {"duplicates_removed": removed, "typed_as_customer": typed}


if __name__ == "__main__":
    before = counts()
    result = cleanup_data()
    after = counts()
    print(tabulate(
        [[name, before[name], after[name]] for name in before],
        headers=["Collection", "Before", "After"],
        tablefmt="grid",
    ))
    print(f"Removed {result['duplicates_removed']} duplicates, typed {result['typed_as_customer']} users as Customer.")
