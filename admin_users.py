# admin_users.py
import math
import re
from io import BytesIO

import pandas as pd
from flask import Blueprint, request, jsonify, send_file
from reportlab.lib import colors
from reportlab.lib.pagesizes import letter, landscape
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph

import members
import network
from auth import admin_required
from db import db
from logger import jlog

admin_users_bp = Blueprint("admin_users", __name__, url_prefix="/api/admin")


def _index(everyone):
    """id -> member, covering every id a merged member is known by."""
    return {i: m for m in everyone for i in m["ids"]}


def _referral_count(member, counts):
    return sum(counts.get(i, 0) for i in member["ids"])


def _with_introducer(member, index):
    row = network.summarize(member)
    introducer = index.get(member.get("introducer"))
    row["introducer_id"] = introducer["_id"] if introducer else None
    row["introducer_name"] = (introducer.get("name") if introducer else None) or member.get("introducer_name")
    row["introducer_mobile"] = (introducer.get("mobile") if introducer else None) or member.get("introducer_mobile")
    return row


# All members, with search + pagination
@admin_users_bp.route("/all-users")
@admin_required
def all_users():
    q = (request.args.get("q") or "").strip()
    user_type = network.normalize_user_type(request.args.get("user_type"))
    try:
        page = max(int(request.args.get("page", 1) or 1), 1)
        per_page = max(int(request.args.get("per_page", 50) or 50), 1)
    except ValueError:
        return jsonify({"message": "page and per_page must be numbers"}), 400

    query = {}
    if q:
        regex = {"$regex": re.escape(q), "$options": "i"}
        query = {"$or": [
            {"name": regex},
            {"display_name": regex},
            {"mobile": regex},
            {"introducer_name": regex},
        ]}

    found = network.all_members(db, query=query)
    if user_type:
        found = [m for m in found if m["member_type"] == user_type]

    total = len(found)
    total_pages = max(math.ceil(total / per_page), 1)
    if page > total_pages:
        page = total_pages
    skip = (page - 1) * per_page

    index = _index(network.all_members(db))
    users = [_with_introducer(m, index) for m in found[skip:skip + per_page]]

    return jsonify({
        "message": "All users retrieved successfully",
        "users": users,
        "page": page,
        "per_page": per_page,
        "total": total,
        "total_pages": total_pages,
    })


@admin_users_bp.route("/users")
@admin_required
def users_with_counts():
    everyone = network.all_members(db)
    counts = network.referral_counts(db)
    index = _index(everyone)

    users = []
    for m in everyone:
        row = _with_introducer(m, index)
        row["referral_count"] = _referral_count(m, counts)
        users.append(row)

    return jsonify({"message": "Users retrieved successfully", "users": users})


@admin_users_bp.route("/users/<user_id>/referrals")
@admin_required
def user_referrals(user_id):
    introducer = members.find_member(user_id)
    if not introducer:
        return jsonify({"message": "User not found"}), 404

    referrals = []
    for m in network.expand_levels(db, introducer["_id"], 1, include_legacy=True)[0]:
        row = network.summarize(m)
        row["sub_referral_count"] = network.count_direct_referrals(db, m["ids"])
        referrals.append(row)

    return jsonify({
        "message": "Referrals retrieved successfully",
        "introducer": network.summarize(introducer),
        "referrals": referrals,
        "total_referrals": len(referrals),
    })


@admin_users_bp.route("/users/<user_id>", methods=["DELETE"])
@admin_required
def delete_user(user_id):
    try:
        member, reassigned = members.remove_member(user_id)
    except members.MemberError as e:
        return jsonify({"message": e.message}), e.status

    jlog("admin_user_deleted", user_id=user_id, reassigned=reassigned)
    return jsonify({
        "message": "User deleted successfully",
        "deleted_user": network.summarize(member),
        "reassigned_referrals_count": reassigned,
    })


@admin_users_bp.route("/referral-connections")
@admin_required
def referral_connections():
    introducer_id = (request.args.get("introducer_id") or "").strip()
    introducer_mobile = (request.args.get("introducer_mobile") or "").strip()

    everyone = network.all_members(db)
    index = _index(everyone)
    counts = network.referral_counts(db)

    introducer = None
    if introducer_id:
        introducer = members.find_member(introducer_id)
        if not introducer:
            return jsonify({"message": "Introducer not found"}), 404
    elif introducer_mobile:
        introducer = next((m for m in everyone if m.get("mobile") == introducer_mobile), None)
        if not introducer:
            return jsonify({"message": "Introducer not found with this mobile number"}), 404

    selected = everyone
    if introducer:
        selected = [m for m in everyone if m.get("introducer") in introducer.get("ids", [introducer["_id"]])]

    connections = []
    for m in selected:
        row = _with_introducer(m, index)
        row["referral_count"] = _referral_count(m, counts)
        connections.append(row)

    total_users = len(connections)
    users_with_referrals = sum(1 for c in connections if c["referral_count"] > 0)
    total_connections = sum(c["referral_count"] for c in connections)

    if introducer:
        message = f"Direct referrals of {introducer.get('display_name') or introducer.get('name')} retrieved successfully"
    else:
        message = "All referral connections retrieved successfully"

    return jsonify({
        "message": message,
        "connections": connections,
        "introducer_info": network.summarize(introducer) if introducer else None,
        "stats": {
            "total_users": total_users,
            "users_with_referrals": users_with_referrals,
            "total_connections": total_connections,
            "average_referrals_per_user": round(total_connections / total_users, 2) if total_users else 0,
        },
    })


# Introducers for the admin dropdown, busiest first
@admin_users_bp.route("/all-users-with-introducers")
@admin_required
def all_users_with_introducers():
    introducers = []
    for row in network.top_introducers(db, limit=None):
        row["referral_count"] = row.pop("count")
        introducers.append(row)
    return jsonify({"message": "Introducers list retrieved successfully", "introducers": introducers})


@admin_users_bp.route("/test-referrals/<mobile>")
@admin_required
def test_referrals(mobile):
    user = next((m for m in network.all_members(db, query={"mobile": mobile})), None)
    if not user:
        return jsonify({"message": "User not found with this mobile number"}), 404

    direct = network.expand_levels(db, user["_id"], 1, include_legacy=True)[0]
    return jsonify({
        "message": "User and referrals found",
        "user": network.summarize(user),
        "direct_referrals": [network.summarize(m) for m in direct],
        "count": len(direct),
    })


# =======================
#        EXPORTS
# =======================
@admin_users_bp.route("/users/export")
@admin_required
def export_users():
    export_type = (request.args.get("format") or "excel").lower()
    everyone = network.all_members(db)
    counts = network.referral_counts(db)
    index = _index(everyone)

    rows = []
    for m in everyone:
        info = _with_introducer(m, index)
        rows.append({
            "Name": info["name"] or "",
            "Display Name": info["display_name"] or "",
            "Mobile": info["mobile"] or "",
            "User Type": info["user_type"],
            "Introducer": info["introducer_name"] or "",
            "Introducer Mobile": info["introducer_mobile"] or "",
            "Direct Referrals": _referral_count(m, counts),
            "Joined": m["created_at"].strftime("%Y-%m-%d %H:%M") if m.get("created_at") else "",
        })

    if export_type == "excel":
        return export_users_to_excel(rows)
    elif export_type == "pdf":
        return export_users_to_pdf(rows)
    return jsonify({"message": "format must be 'excel' or 'pdf'"}), 400


def export_users_to_excel(rows):
    df = pd.DataFrame(rows)
    output = BytesIO()
    df.to_excel(output, index=False)
    output.seek(0)
    return send_file(output, download_name="members.xlsx", as_attachment=True)


def export_users_to_pdf(rows):
    output = BytesIO()
    doc = SimpleDocTemplate(output, pagesize=landscape(letter))
    elements = []
    styles = getSampleStyleSheet()
    elements.append(Paragraph("Members Report", styles['Title']))

    data = [["Name", "Mobile", "Type", "Introducer", "Referrals", "Joined"]]
    for r in rows:
        data.append([
            r["Display Name"] or r["Name"],
            r["Mobile"],
            r["User Type"],
            r["Introducer"],
            str(r["Direct Referrals"]),
            r["Joined"],
        ])

    table = Table(data, repeatRows=1)
    table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.darkblue),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('FONTSIZE', (0, 0), (-1, -1), 9),
        ('ALIGN', (0, 0), (-1, -1), 'LEFT'),
        ('GRID', (0, 0), (-1, -1), 0.25, colors.black),
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
    ]))

    elements.append(table)
    doc.build(elements)
    output.seek(0)
    return send_file(output, download_name="members.pdf", as_attachment=True)
