from bson import ObjectId

ADMIN_EMAIL = "admin@quiz.com"


def auth(token):
    return {"x-auth-token": token}


def _me(client, token):
    return client.get("/users/auth", headers=auth(token))


def test_root(client):
    res = client.get("/")
    assert res.status_code == 200
    assert "message" in res.json()


def test_register_returns_token(client, register):
    token = register("a@x.com", "secret1")

    res = _me(client, token)
    assert res.status_code == 200
    me = res.json()
    assert me["email"] == "a@x.com"
    assert me["isAdmin"] is False
    assert me["completedGames"] == []
    assert me["createdAt"]
    assert "passwordHash" not in me and "password_hash" not in me


def test_register_duplicate_email(client, register):
    register("a@x.com", "secret1")

    res = client.post("/users", json={"email": "a@x.com", "password": "other12"})
    assert res.status_code == 400
    assert res.json() == {"errors": [{"msg": "User already exists"}]}
    emails = [u["email"] for u in client.get("/users").json()]
    assert emails.count("a@x.com") == 1


def test_register_validation(client):
    res = client.post("/users", json={"email": "not-an-email", "password": "123"})
    assert res.status_code == 400
    params = {e["param"] for e in res.json()["errors"]}
    assert params == {"email", "password"}
    assert all(e["location"] == "body" for e in res.json()["errors"])


def test_login(client, register):
    register("a@x.com", "secret1")

    res = client.post("/users/auth", json={"email": "a@x.com", "password": "secret1"})
    assert res.status_code == 200
    assert _me(client, res.json()["token"]).json()["email"] == "a@x.com"


def test_login_wrong_password_is_bad_request(client, register):
    register("a@x.com", "secret1")

    res = client.post("/users/auth", json={"email": "a@x.com", "password": "wrongpass"})
    assert res.status_code == 400
    assert res.json() == {"errors": [{"msg": "Invalid Credentials"}]}


def test_login_unknown_email(client):
    res = client.post("/users/auth", json={"email": "nobody@x.com", "password": "secret1"})
    assert res.status_code == 400
    assert res.json() == {"errors": [{"msg": "Invalid Credentials"}]}


def test_current_user_requires_token(client):
    res = client.get("/users/auth")
    assert res.status_code == 401
    assert res.json() == {"msg": "No token, authorization denied"}


def test_current_user_invalid_token(client, register):
    token = register()
    tampered = token[:-5] + ("A" if token[-5] != "A" else "B") + token[-4:]

    for bad in ("garbage", tampered):
        res = _me(client, bad)
        assert res.status_code == 401
        assert res.json() == {"msg": "Token is not valid"}


def test_list_users_hides_password(client, register):
    register("a@x.com", "secret1")
    register("b@x.com", "secret2")

    res = client.get("/users")
    assert res.status_code == 200
    users = res.json()
    assert {u["email"] for u in users} == {ADMIN_EMAIL, "a@x.com", "b@x.com"}
    assert all("passwordHash" not in u and "password_hash" not in u for u in users)


def test_admin_seeded_once(client):
    admins = [u for u in client.get("/users").json() if u["isAdmin"]]
    assert [a["email"] for a in admins] == [ADMIN_EMAIL]


def test_delete_self(client, register):
    token = register("a@x.com", "secret1")
    user_id = _me(client, token).json()["id"]

    res = client.delete(f"/users/{user_id}", headers=auth(token))
    assert res.status_code == 200
    assert res.json() == {"msg": "User successfully deleted from our platform"}
    assert user_id not in [u["id"] for u in client.get("/users").json()]
    assert _me(client, token).status_code == 404


def test_delete_other_user_forbidden(client, register):
    victim = register("a@x.com", "secret1")
    victim_id = _me(client, victim).json()["id"]
    attacker = register("b@x.com", "secret2")

    res = client.delete(f"/users/{victim_id}", headers=auth(attacker))
    assert res.status_code == 403
    assert res.json() == {"msg": "Not allowed to delete this user"}
    assert _me(client, victim).status_code == 200


def test_admin_deletes_user(client, register, admin_token):
    token = register("a@x.com", "secret1")
    user_id = _me(client, token).json()["id"]

    res = client.delete(f"/users/{user_id}", headers=auth(admin_token))
    assert res.status_code == 200
    assert user_id not in [u["id"] for u in client.get("/users").json()]


def test_delete_missing_user(client, register):
    token = register()

    for missing in (str(ObjectId()), "not-an-id"):
        res = client.delete(f"/users/{missing}", headers=auth(token))
        assert res.status_code == 404
        assert res.json() == {"msg": "User not found"}


def test_delete_requires_token(client, register):
    token = register()
    user_id = _me(client, token).json()["id"]

    assert client.delete(f"/users/{user_id}").status_code == 401
    assert _me(client, token).status_code == 200
