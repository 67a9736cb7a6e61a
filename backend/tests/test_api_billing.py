from datetime import date

from mess.extensions import db
from mess.models import AttendanceRecord, Bill, BillingConfiguration
from mess.services import payments, reconciler

CARD = {"card_number": "4111111111111111", "card_holder_name": "Amina Khan", "expiry_date": "09/28", "cvv": "321"}


def test_mark_attendance_and_list_by_date(client, teacher, admin_headers):
    response = client.post("/attendance/", headers=admin_headers, json={
        "teacher_id": teacher.id, "date": "2025-07-15", "breakfast": True, "lunch": False, "dinner": "true",
    })
    assert response.status_code == 201

    listing = client.get("/attendance/?date=2025-07-15", headers=admin_headers).get_json()
    assert len(listing["attendance"]) == 1
    row = listing["attendance"][0]
    assert row["teacher_name"] == "Amina Khan"
    assert (row["breakfast_taken"], row["lunch_taken"], row["dinner_taken"]) == (True, False, True)


def test_mark_attendance_without_meals(client, teacher, admin_headers):
    response = client.post("/attendance/", headers=admin_headers, json={"teacher_id": teacher.id})
    assert response.status_code == 400
    assert response.get_json()["error"] == "NoMealsSelected"
    assert AttendanceRecord.query.count() == 0


def test_mark_attendance_bad_date(client, teacher, admin_headers):
    response = client.post("/attendance/", headers=admin_headers,
                           json={"teacher_id": teacher.id, "date": "15/07/2025", "lunch": True})
    assert response.status_code == 400


def test_bulk_marking_skips_empty_entries(client, teacher, other_teacher, admin_headers):
    response = client.post("/attendance/bulk", headers=admin_headers, json={
        "date": "2025-07-14",
        "entries": [
            {"teacher_id": teacher.id, "lunch": True},
            {"teacher_id": other_teacher.id},
        ],
    })
    body = response.get_json()
    assert response.status_code == 201
    assert len(body["attendance"]) == 1
    assert body["skipped"] == [other_teacher.id]


def test_bulk_marking_rejects_bad_entries_before_saving(client, teacher, other_teacher, admin_headers):
    def bulk(entries):
        return client.post("/attendance/bulk", headers=admin_headers,
                           json={"date": "2025-07-14", "entries": entries})

    missing_id = bulk([{"teacher_id": teacher.id, "lunch": True}, {"lunch": True}])
    assert missing_id.status_code == 400
    assert missing_id.get_json()["error"] == "ValidationError"

    not_numeric = bulk([{"teacher_id": teacher.id, "lunch": True}, {"teacher_id": "abc", "dinner": True}])
    assert not_numeric.status_code == 400

    not_an_object = bulk([{"teacher_id": teacher.id, "lunch": True}, "oops"])
    assert not_an_object.status_code == 400

    repeated = bulk([{"teacher_id": teacher.id, "lunch": True}, {"teacher_id": teacher.id, "dinner": True}])
    assert repeated.status_code == 400

    unknown = bulk([{"teacher_id": teacher.id, "lunch": True}, {"teacher_id": 4242, "lunch": True}])
    assert unknown.status_code == 404

    bad_flag = bulk([{"teacher_id": teacher.id, "lunch": "maybe"}])
    assert bad_flag.status_code == 400

    assert AttendanceRecord.query.count() == 0


def test_bulk_marking_charges_billed_period(client, teacher, other_teacher, admin_headers):
    reconciler.generate(teacher.id, 7, 2025)
    response = client.post("/attendance/bulk", headers=admin_headers, json={
        "date": "2025-07-14",
        "entries": [
            {"teacher_id": teacher.id, "lunch": True},
            {"teacher_id": other_teacher.id, "breakfast": "yes", "lunch": "no"},
        ],
    })
    assert response.status_code == 201
    rows = {row["teacher_id"]: row for row in response.get_json()["attendance"]}
    assert rows[teacher.id]["bill_id"] is not None
    assert rows[other_teacher.id]["bill_id"] is None
    assert rows[other_teacher.id]["lunch_taken"] is False
    assert reconciler.find_bill(teacher.id, 7, 2025).total_bill == 2560
    assert reconciler.find_bill(other_teacher.id, 7, 2025) is None


def test_edit_attendance_adjusts_bill(client, teacher, other_teacher, record, admin_headers):
    reconciler.generate(teacher.id, 7, 2025)
    saved = record(teacher, 16, breakfast=True, lunch=False, dinner=False)

    response = client.put(f"/attendance/{saved.id}", headers=admin_headers,
                          json={"breakfast": True, "lunch": True, "dinner": False})
    body = response.get_json()

    assert response.status_code == 200
    assert body["bill_adjustment"] == 60.0
    assert body["bill"]["total_bill"] == 2590.0


def test_teacher_deletes_own_attendance_on_paid_bill(client, teacher, other_teacher, record, headers_for):
    bill = reconciler.generate(teacher.id, 7, 2025)
    payments.mark_paid(bill.id)
    saved = record(teacher, 17, breakfast=True, lunch=False, dinner=False)

    response = client.delete(f"/attendance/mine/{saved.id}", headers=headers_for(teacher.user))
    body = response.get_json()

    assert response.status_code == 200
    assert "Credit of 30.00" in body["message"]
    assert body["bill"]["unpaid_balance"] == -30.0


def test_teacher_cannot_delete_someone_elses_attendance(client, teacher, other_teacher, record, headers_for):
    saved = record(other_teacher, 17)
    response = client.delete(f"/attendance/mine/{saved.id}", headers=headers_for(teacher.user))
    assert response.status_code == 404
    assert db.session.get(AttendanceRecord, saved.id) is not None


def test_teacher_views_own_attendance(client, teacher, other_teacher, record, headers_for):
    record(teacher, 10)
    record(teacher, 12, breakfast=False, lunch=True, dinner=False)
    record(other_teacher, 10)

    body = client.get("/attendance/mine?month=7&year=2025", headers=headers_for(teacher.user)).get_json()
    assert len(body["attendance"]) == 2
    assert body["total_meals"] == 4

    recent = client.get("/attendance/mine/recent", headers=headers_for(teacher.user)).get_json()
    assert [r["date"] for r in recent["attendance"]] == ["2025-07-12", "2025-07-10"]


def test_monthly_report_lists_teachers_without_attendance(client, teacher, other_teacher, record, admin_headers):
    record(teacher, 1)
    record(teacher, 2, breakfast=True, lunch=False, dinner=False)

    body = client.get("/attendance/report?month=7&year=2025", headers=admin_headers).get_json()
    by_name = {row["teacher_name"]: row for row in body["teachers"]}

    assert by_name["Amina Khan"]["total_meals"] == 4
    assert by_name["Amina Khan"]["breakfast"] == 2
    assert by_name["Bilal Ahmed"]["total_meals"] == 0
    assert [d["date"] for d in body["daily_summary"]] == ["2025-07-01", "2025-07-02"]
    assert body["total_meals"] == 4


def test_billing_config_round_trip(client, admin_headers):
    current = client.get("/billing/config", headers=admin_headers).get_json()
    assert current["config"]["lunch_rate"] == 60.0

    bad = client.put("/billing/config", headers=admin_headers, json={
        "breakfast_rate": "abc", "lunch_rate": 60, "dinner_rate": 50, "monthly_water_bill_total": 5000,
    })
    assert bad.status_code == 400

    ok = client.put("/billing/config", headers=admin_headers, json={
        "breakfast_rate": 35, "lunch_rate": 65, "dinner_rate": 55, "monthly_water_bill_total": 6000,
    })
    assert ok.status_code == 200
    assert BillingConfiguration.query.count() == 1
    assert BillingConfiguration.query.one().breakfast_rate == 35


def test_generate_endpoint(client, teacher, other_teacher, record, admin_headers):
    record(teacher, 5)
    response = client.post("/billing/generate", headers=admin_headers,
                           json={"teacher_id": teacher.id, "month": 7, "year": 2025})
    body = response.get_json()

    assert response.status_code == 200
    assert body["bill"]["food_bill"] == 140.0
    assert body["bill"]["total_bill"] == 2640.0


def test_generate_endpoint_errors(client, teacher, admin_headers):
    bad_period = client.post("/billing/generate", headers=admin_headers,
                             json={"teacher_id": teacher.id, "month": 13, "year": 2025})
    assert bad_period.status_code == 400

    bill = reconciler.generate(teacher.id, 7, 2025)
    payments.mark_paid(bill.id)
    paid = client.post("/billing/generate", headers=admin_headers,
                       json={"teacher_id": teacher.id, "month": 7, "year": 2025})
    assert paid.status_code == 409
    assert paid.get_json()["error"] == "AlreadyPaid"

    BillingConfiguration.query.delete()
    db.session.commit()
    missing = client.post("/billing/generate", headers=admin_headers,
                          json={"teacher_id": teacher.id, "month": 8, "year": 2025})
    assert missing.status_code == 412


def test_list_mark_paid_and_delete_bills(client, teacher, other_teacher, admin_headers):
    bill = reconciler.generate(teacher.id, 7, 2025)
    reconciler.generate(other_teacher.id, 7, 2025)

    unpaid = client.get("/billing/?is_paid=false", headers=admin_headers).get_json()
    assert len(unpaid["bills"]) == 2

    assert client.delete(f"/billing/{bill.id}", headers=admin_headers).status_code == 409
    assert client.post(f"/billing/{bill.id}/mark-paid", headers=admin_headers).status_code == 200
    assert client.post(f"/billing/{bill.id}/mark-paid", headers=admin_headers).status_code == 409
    assert client.delete(f"/billing/{bill.id}", headers=admin_headers).status_code == 200
    assert Bill.query.count() == 1


def test_teacher_bills_and_detail(client, teacher, other_teacher, headers_for):
    june = reconciler.generate(teacher.id, 6, 2025)
    reconciler.generate(teacher.id, 7, 2025)
    payments.mark_paid(june.id)
    foreign = reconciler.generate(other_teacher.id, 7, 2025)
    headers = headers_for(teacher.user)

    mine = client.get("/billing/mine", headers=headers).get_json()
    assert len(mine["bills"]) == 2
    assert mine["total_unpaid"] == 2500.0

    detail = client.get(f"/billing/mine/{june.id}", headers=headers).get_json()
    assert detail["rates"]["breakfast"] == 30.0
    assert client.get(f"/billing/mine/{foreign.id}", headers=headers).status_code == 404


def test_pay_bill_with_card(client, teacher, other_teacher, record, headers_for):
    bill = reconciler.generate(teacher.id, 7, 2025)
    record(teacher, 20)
    headers = headers_for(teacher.user)

    token = client.get(f"/payments/{bill.id}/token", headers=headers).get_json()
    assert len(token["payment_token"]) == 16
    assert token["amount"] == 2640.0

    response = client.post(f"/payments/{bill.id}", headers=headers, json=CARD)
    body = response.get_json()
    assert response.status_code == 200
    assert body["transaction_id"].startswith("TXN20250715")
    assert body["bill"]["is_paid"] is True
    assert body["bill"]["unpaid_balance"] == 0.0
    assert AttendanceRecord.query.filter_by(teacher_id=teacher.id, date=date(2025, 7, 20)).count() == 0

    again = client.post(f"/payments/{bill.id}", headers=headers, json=CARD)
    assert again.status_code == 409


def test_declined_card_leaves_bill_unpaid(client, teacher, other_teacher, headers_for):
    bill = reconciler.generate(teacher.id, 7, 2025)
    response = client.post(f"/payments/{bill.id}", headers=headers_for(teacher.user),
                           json=dict(CARD, cvv="1"))

    assert response.status_code == 402
    assert response.get_json()["error"] == "PaymentDeclined"
    assert not db.session.get(Bill, bill.id).is_paid
