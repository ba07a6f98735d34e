from django.contrib.auth import get_user_model
from rest_framework.test import APITestCase

from users.models import UserEncryptionProfile

User = get_user_model()

SALT = "ab" * 32


class EncryptionProfileAPITests(APITestCase):
    def setUp(self):
        self.user = User.objects.create_user(
            username="ada@example.com",
            email="ada@example.com",
            password="password123",
        )
        self.client.force_authenticate(self.user)

    # ---------------------------------------------------------
    # Helper
    # ---------------------------------------------------------
    def _initialize(self, salt=SALT, nested=True):
        body = {
            "salt": salt,
            "algorithm": "AES-256-CBC",
            "version": "1.0",
            "enabled": True,
            "created": "2024-05-01T10:00:00Z",
        }
        if nested:
            body = {"encryption": body}
        return self.client.patch("/api/users/encryption/", body, format="json")

    # ---------------------------------------------------------
    # Tests
    # ---------------------------------------------------------

    def test_profile_created_empty_on_signup(self):
        res = self.client.get("/api/users/encryption/")

        self.assertEqual(res.status_code, 200)
        enc = res.json()["user"]["encryption"]
        self.assertEqual(enc["salt"], "")
        self.assertEqual(enc["encryptionKey"], "")
        self.assertEqual(enc["algorithm"], "AES-256-CBC")

    def test_initialize_once(self):
        res = self._initialize()
        self.assertEqual(res.status_code, 200)

        user = res.json()["user"]
        self.assertEqual(user["email"], "ada@example.com")
        self.assertEqual(user["encryption"]["salt"], SALT)
        self.assertEqual(len(user["encryption"]["encryptionKey"]), 64)

        res = self._initialize(salt="cd" * 32, nested=False)
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.json()["error"], "Encryption already initialized")

        profile = UserEncryptionProfile.objects.get(user=self.user)
        self.assertEqual(profile.salt, SALT)

    def test_initialize_requires_salt(self):
        res = self.client.patch("/api/users/encryption/", {"encryption": {}}, format="json")
        self.assertEqual(res.status_code, 400)

    def test_initialize_rejects_bad_salt(self):
        res = self._initialize(salt="not-hex-at-all-not-hex")
        self.assertEqual(res.status_code, 400)
        self.assertFalse(UserEncryptionProfile.objects.get(user=self.user).is_initialized)

    def test_initialize_rejects_unknown_suite(self):
        res = self.client.patch(
            "/api/users/encryption/",
            {"salt": SALT, "algorithm": "DES"},
            format="json",
        )
        self.assertEqual(res.status_code, 400)

    def test_stable_key_is_never_replaced(self):
        first = self.client.post(
            "/api/users/encryption/stable-key/",
            {"encryptionKey": "11" * 32},
            format="json",
        )
        self.assertEqual(first.status_code, 200)
        enc = first.json()["user"]["encryption"]
        self.assertEqual(enc["encryptionKey"], "11" * 32)
        # a profile without salt gets a server salt in the same write
        self.assertTrue(enc["salt"])

        second = self.client.post(
            "/api/users/encryption/stable-key/",
            {"encryptionKey": "22" * 32},
            format="json",
        )
        self.assertEqual(second.status_code, 200)
        self.assertEqual(second.json()["user"]["encryption"]["encryptionKey"], "11" * 32)
        self.assertEqual(second.json()["message"], "Stable key already exists")

    def test_stable_key_generated_when_not_proposed(self):
        res = self.client.post("/api/users/encryption/stable-key/", {}, format="json")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(len(res.json()["user"]["encryption"]["encryptionKey"]), 64)

    def test_stable_key_rejects_short_key(self):
        res = self.client.post(
            "/api/users/encryption/stable-key/",
            {"encryptionKey": "abcd"},
            format="json",
        )
        self.assertEqual(res.status_code, 400)

    def test_reset_requires_confirmation(self):
        self._initialize()

        res = self.client.post("/api/users/encryption/reset/", {}, format="json")
        self.assertEqual(res.status_code, 400)
        self.assertTrue(UserEncryptionProfile.objects.get(user=self.user).has_stable_key)

        res = self.client.post("/api/users/encryption/reset/", {"confirm": True}, format="json")
        self.assertEqual(res.status_code, 200)
        enc = res.json()["user"]["encryption"]
        self.assertEqual(enc["salt"], "")
        self.assertEqual(enc["encryptionKey"], "")
        self.assertFalse(enc["enabled"])

    def test_requires_authentication(self):
        self.client.force_authenticate(None)
        res = self.client.get("/api/users/encryption/")
        self.assertEqual(res.status_code, 401)


class RegisterAPITests(APITestCase):

    def test_register_and_obtain_token(self):
        res = self.client.post(
            "/api/auth/register/",
            {"email": "Grace@Example.com", "password": "correct-horse-battery"},
            format="json",
        )
        self.assertEqual(res.status_code, 201)
        self.assertEqual(res.json()["email"], "grace@example.com")

        user = User.objects.get(email="grace@example.com")
        self.assertTrue(UserEncryptionProfile.objects.filter(user=user).exists())

        res = self.client.post(
            "/api/auth/token/",
            {"username": "grace@example.com", "password": "correct-horse-battery"},
            format="json",
        )
        self.assertEqual(res.status_code, 200)
        self.assertIn("access", res.json())

        res = self.client.post(
            "/api/auth/token/refresh/",
            {"refresh": res.json()["refresh"]},
            format="json",
        )
        self.assertEqual(res.status_code, 200)
        self.assertIn("access", res.json())

    def test_register_with_username(self):
        res = self.client.post(
            "/api/auth/register/",
            {"email": "lin@example.com", "username": "lin", "password": "correct-horse-battery"},
            format="json",
        )
        self.assertEqual(res.status_code, 201)
        self.assertEqual(res.json()["username"], "lin")

        res = self.client.post(
            "/api/auth/register/",
            {"email": "other@example.com", "username": "LIN", "password": "correct-horse-battery"},
            format="json",
        )
        self.assertEqual(res.status_code, 400)

    def test_duplicate_email_rejected(self):
        User.objects.create_user(username="x", email="dup@example.com", password="password123")

        res = self.client.post(
            "/api/auth/register/",
            {"email": "dup@example.com", "password": "correct-horse-battery"},
            format="json",
        )
        self.assertEqual(res.status_code, 400)
