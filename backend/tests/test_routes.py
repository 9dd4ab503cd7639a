from schooladmin.extensions import db
from schooladmin.models import AttendanceRecord, RoleEnum, SchoolYear, User
from schooladmin.services import supervision


def test_unauthenticated_request_uses_the_envelope(client):
    response = client.get("/school-years/working-year")

    assert response.status_code == 401
    body = response.get_json()
    assert body["success"] is False
    assert body["error"] == "UNAUTHORIZED"


def test_unknown_route_uses_the_envelope(client):
    response = client.get("/does-not-exist")

    assert response.status_code == 404
    assert response.get_json()["success"] is False


def test_login_me_and_logout(client, make):
    make.user(RoleEnum.secretaire, username="secretaire", password="motdepasse")

    bad = client.post("/auth/login", json={"username": "secretaire", "password": "nope"})
    assert bad.status_code == 401

    response = client.post("/auth/login", json={"username": "secretaire", "password": "motdepasse"})
    assert response.status_code == 200
    token = response.get_json()["data"]["access_token"]
    headers = {"Authorization": f"Bearer {token}"}

    me = client.get("/auth/me", headers=headers)
    assert me.get_json()["data"]["user"]["role"] == "secretaire"

    assert client.post("/auth/logout", headers=headers).status_code == 200
    revoked = client.get("/auth/me", headers=headers)
    assert revoked.status_code == 401
    assert revoked.get_json()["error"] == "TOKEN_REVOKED"


def test_scan_success_and_duplicate(client, campus, auth_header):
    headers = auth_header(campus["supervisor"])
    payload = {"student_qr_code": f"STUDENT_ID_{campus['student'].id}", "supervisor_id": campus["supervisor"].id}

    first = client.post("/supervisor/scan", json=payload, headers=headers)
    assert first.status_code == 200
    body = first.get_json()
    assert body["success"] is True
    assert body["message"] == "Entrée enregistrée avec succès"
    assert body["data"]["student_name"] == "Awa Ndiaye"

    second = client.post("/supervisor/scan", json=payload, headers=headers)
    assert second.status_code == 422
    body = second.get_json()
    assert body["error"] == "ALREADY_MARKED_TODAY"
    assert body["data"]["marked_at"] == first.get_json()["data"]["marked_at"]
    assert AttendanceRecord.query.count() == 1


def test_scan_error_codes(client, make, campus, auth_header):
    headers = auth_header(campus["supervisor"])
    supervisor_id = campus["supervisor"].id

    invalid = client.post("/supervisor/scan", json={"student_qr_code": "hello", "supervisor_id": supervisor_id},
                          headers=headers)
    assert (invalid.status_code, invalid.get_json()["error"]) == (422, "INVALID_QR_FORMAT")

    missing = client.post("/supervisor/scan", json={"student_qr_code": "STUDENT_ID_777",
                                                    "supervisor_id": supervisor_id}, headers=headers)
    assert (missing.status_code, missing.get_json()["error"]) == (404, "STUDENT_NOT_FOUND")

    outsider = make.student(make.series(make.school_class(name="5ème")), campus["year"])
    forbidden = client.post("/supervisor/scan", json={"student_qr_code": str(outsider.id),
                                                      "supervisor_id": supervisor_id}, headers=headers)
    assert forbidden.status_code == 403
    assert forbidden.get_json()["error"] == "NOT_AUTHORIZED_FOR_CLASS"
    assert forbidden.get_json()["data"]["student_name"] == outsider.full_name

    incomplete = client.post("/supervisor/scan", json={"supervisor_id": supervisor_id}, headers=headers)
    assert incomplete.status_code == 422
    assert "student_qr_code" in incomplete.get_json()["errors"]


def test_supervisor_cannot_scan_on_behalf_of_another(client, make, campus, auth_header):
    other = make.user(RoleEnum.surveillant_general)
    response = client.post("/supervisor/scan", headers=auth_header(other), json={
        "student_qr_code": str(campus["student"].id), "supervisor_id": campus["supervisor"].id,
    })
    assert response.status_code == 403


def test_accountant_cannot_scan(client, make, campus, auth_header):
    accountant = make.user(RoleEnum.comptable)
    response = client.post("/supervisor/scan", headers=auth_header(accountant), json={
        "student_qr_code": str(campus["student"].id), "supervisor_id": accountant.id,
    })
    assert response.status_code == 403


def test_daily_attendance_is_scoped_to_assigned_classes(client, make, campus, auth_header):
    headers = auth_header(campus["supervisor"])
    client.post("/supervisor/scan", headers=headers, json={
        "student_qr_code": str(campus["student"].id), "supervisor_id": campus["supervisor"].id,
    })
    supervisor_id = campus["supervisor"].id

    response = client.get(f"/supervisor/daily-attendance?supervisor_id={supervisor_id}", headers=headers)
    assert response.status_code == 200
    data = response.get_json()["data"]
    assert data["total_present"] == 1
    assert data["attendances"][0]["student_id"] == campus["student"].id

    again = client.get(f"/supervisor/daily-attendance?supervisor_id={supervisor_id}", headers=headers)
    assert again.get_json()["data"] == data

    other_class = make.school_class()
    filtered = client.get(f"/supervisor/daily-attendance?supervisor_id={supervisor_id}&class_id={other_class.id}",
                          headers=headers)
    assert filtered.status_code == 403


def test_attendance_range_validates_dates(client, campus, auth_header):
    headers = auth_header(campus["supervisor"])
    supervisor_id = campus["supervisor"].id

    bad = client.get(f"/supervisor/attendance-range?supervisor_id={supervisor_id}"
                     "&start_date=2025-03-10&end_date=2025-03-01", headers=headers)
    assert bad.status_code == 422

    ok = client.get(f"/supervisor/attendance-range?supervisor_id={supervisor_id}"
                    "&start_date=2025-03-01&end_date=2025-03-10", headers=headers)
    assert ok.status_code == 200
    assert ok.get_json()["data"]["total_records"] == 0


def test_assign_supervisor_over_http(client, make, auth_header):
    admin = make.user(RoleEnum.admin)
    year = make.year(is_current=True)
    supervisor = make.user(RoleEnum.surveillant_general)
    school_class = make.school_class()

    created = client.post("/supervisor/assign", headers=auth_header(admin), json={
        "supervisor_id": supervisor.id, "school_class_id": school_class.id,
    })
    assert created.status_code == 201
    assert created.get_json()["data"]["school_year_id"] == year.id

    duplicate = client.post("/supervisor/assign", headers=auth_header(admin), json={
        "supervisor_id": supervisor.id, "school_class_id": school_class.id,
    })
    assert duplicate.status_code == 422
    assert duplicate.get_json()["error"] == "DUPLICATE_ASSIGNMENT"


def test_school_year_management_requires_admin(client, make, auth_header):
    admin = make.user(RoleEnum.admin)
    clerk = make.user(RoleEnum.secretaire)
    payload = {"name": "2025-2026", "start_date": "2025-09-01", "end_date": "2026-07-03", "is_current": True}

    assert client.post("/school-years", json=payload, headers=auth_header(clerk)).status_code == 403

    created = client.post("/school-years", json=payload, headers=auth_header(admin))
    assert created.status_code == 201
    year_id = created.get_json()["data"]["id"]

    other = client.post("/school-years", headers=auth_header(admin), json={
        "name": "2026-2027", "start_date": "2026-09-01", "end_date": "2027-07-02",
    }).get_json()["data"]
    response = client.post(f"/school-years/{other['id']}/set-current", headers=auth_header(admin))
    assert response.status_code == 200
    assert SchoolYear.query.filter_by(is_current=True).one().id == other["id"]
    assert db.session.get(SchoolYear, year_id).is_current is False


def test_working_year_endpoints(client, make, auth_header):
    user = make.user(RoleEnum.comptable)
    current = make.year(name="2024-2025", is_current=True)
    chosen = make.year(name="2025-2026")

    assert client.get("/school-years/working-year", headers=auth_header(user)).get_json()["data"]["id"] == current.id

    response = client.put("/school-years/working-year", headers=auth_header(user),
                          json={"school_year_id": chosen.id})
    assert response.status_code == 200
    assert client.get("/school-years/working-year", headers=auth_header(user)).get_json()["data"]["id"] == chosen.id


def test_admins_cannot_be_removed(client, make, auth_header):
    admin = make.user(RoleEnum.admin)
    other_admin = make.user(RoleEnum.admin)
    clerk = make.user(RoleEnum.secretaire)

    assert client.delete(f"/users/{other_admin.id}", headers=auth_header(admin)).status_code == 403

    assert client.delete(f"/users/{clerk.id}", headers=auth_header(admin)).status_code == 200
    assert db.session.get(User, clerk.id).deleted is True
    assert client.post(f"/users/{clerk.id}/restore", headers=auth_header(admin)).status_code == 200


def test_create_user_rejects_duplicate_username(client, make, auth_header):
    admin = make.user(RoleEnum.admin, username="admin")
    payload = {"username": "admin", "password": "secret123", "role": "comptable"}

    response = client.post("/users", json=payload, headers=auth_header(admin))
    assert response.status_code == 422
    assert response.get_json()["error"] == "DUPLICATE_USERNAME"

    payload["username"] = "compta"
    assert client.post("/users", json=payload, headers=auth_header(admin)).status_code == 201


def test_bulk_scholarship_over_http(client, make, campus, auth_header):
    accountant = make.user(RoleEnum.comptable_superieur)
    headers = auth_header(accountant)
    tranche = client.post("/payments/tranches", json={"name": "Première tranche"}, headers=headers).get_json()["data"]
    scholarship = client.post("/scholarships/classes", headers=headers, json={
        "school_class_id": campus["school_class"].id, "payment_tranche_id": tranche["id"],
        "name": "Bourse", "amount": 10000,
    }).get_json()["data"]
    other = make.student(campus["series"], campus["year"], first_name="Jean")

    response = client.post("/scholarships/assign-bulk", headers=headers, json={
        "student_ids": [campus["student"].id, other.id],
        "class_scholarship_id": scholarship["id"],
        "payment_tranche_id": tranche["id"],
    })

    assert response.status_code == 200
    assert response.get_json()["data"]["assigned_count"] == 2
    assert response.get_json()["message"] == "2 bourse(s) assignée(s) avec succès"


def test_structure_crud(client, make, auth_header):
    admin = make.user(RoleEnum.admin)
    headers = auth_header(admin)

    section = client.post("/structure/sections", json={"name": "Anglophone"}, headers=headers)
    assert section.status_code == 201
    section_id = section.get_json()["data"]["id"]

    level = client.post("/structure/levels", json={"name": "Form 1", "section_id": section_id}, headers=headers)
    assert level.status_code == 201

    orphan = client.post("/structure/levels", json={"name": "Form 2", "section_id": 999}, headers=headers)
    assert orphan.status_code == 422

    toggled = client.post(f"/structure/sections/{section_id}/toggle", headers=headers)
    assert toggled.get_json()["data"]["is_active"] is False

    listed = client.get(f"/structure/levels?section_id={section_id}", headers=headers)
    assert [row["name"] for row in listed.get_json()["data"]] == ["Form 1"]


def test_structure_duplicate_name_is_a_conflict(client, make, auth_header):
    headers = auth_header(make.user(RoleEnum.admin))

    assert client.post("/structure/sections", json={"name": "Francophone"}, headers=headers).status_code == 201
    duplicate = client.post("/structure/sections", json={"name": "Francophone"}, headers=headers)
    assert duplicate.status_code == 422
    assert duplicate.get_json()["error"] == "DUPLICATE_NAME"

    other = client.post("/structure/sections", json={"name": "Anglophone"}, headers=headers).get_json()["data"]
    renamed = client.put(f"/structure/sections/{other['id']}", json={"name": "Francophone"}, headers=headers)
    assert renamed.status_code == 422
    assert renamed.get_json()["error"] == "DUPLICATE_NAME"


def test_non_string_fields_are_validation_errors(client, make, auth_header):
    headers = auth_header(make.user(RoleEnum.admin))

    section = client.post("/structure/sections", json={"name": 5}, headers=headers)
    assert section.status_code == 422
    assert "name" in section.get_json()["errors"]

    user = client.post("/users", json={"username": 123, "password": "secret123", "role": "comptable"},
                       headers=headers)
    assert user.status_code == 422
    assert "username" in user.get_json()["errors"]

    year = client.post("/school-years", json={"name": 2024, "start_date": "2024-09-02", "end_date": "2025-07-04"},
                       headers=headers)
    assert year.status_code == 422
    assert "name" in year.get_json()["errors"]


def test_role_change_revokes_supervisor_assignments(client, make, campus, auth_header):
    admin = make.user(RoleEnum.admin)
    supervisor = campus["supervisor"]

    response = client.put(f"/users/{supervisor.id}", json={"role": "comptable"}, headers=auth_header(admin))

    assert response.status_code == 200
    assert not supervision.is_authorized(supervisor.id, campus["school_class"].id, campus["year"].id)
    assert supervision.assigned_class_ids(supervisor.id, campus["year"].id) == []


def test_teacher_bulk_assign_over_http(client, make, auth_header):
    year = make.year(is_current=True)
    admin = make.user(RoleEnum.admin)
    headers = auth_header(admin)
    teacher = client.post("/teachers", headers=headers, json={
        "first_name": "Paul", "last_name": "Biya", "phone_number": "690000000",
    }).get_json()["data"]
    subject = client.post("/teachers/subjects", json={"name": "Mathématiques", "code": "math"},
                          headers=headers).get_json()["data"]
    class_subject_ids = [
        client.post("/teachers/class-subjects", headers=headers, json={
            "school_class_id": make.school_class().id, "subject_id": subject["id"], "coefficient": 4,
        }).get_json()["data"]["id"]
        for _ in range(2)
    ]
    client.post("/teachers/assignments", headers=headers,
                json={"teacher_id": teacher["id"], "class_subject_id": class_subject_ids[0]})

    response = client.post(f"/teachers/{teacher['id']}/bulk-assign", headers=headers,
                           json={"class_subject_ids": class_subject_ids})

    assert response.status_code == 200
    body = response.get_json()["data"]
    assert body["assigned_count"] == 1
    assert len(body["errors"]) == 1
    listed = client.get(f"/teachers/{teacher['id']}/assignments?school_year_id={year.id}", headers=headers)
    assert len(listed.get_json()["data"]) == 2


def test_student_qr_codes(client, make, campus, auth_header):
    clerk = make.user(RoleEnum.secretaire)
    response = client.get(f"/students/{campus['student'].id}/qr", headers=auth_header(clerk))

    assert response.status_code == 200
    assert response.get_json()["data"]["qr_value"] == f"STUDENT_ID_{campus['student'].id}"

    listing = client.get("/students/qr-codes", headers=auth_header(clerk))
    assert len(listing.get_json()["data"]) == 1
