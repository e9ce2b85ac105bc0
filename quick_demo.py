#!/usr/bin/env python3
"""Quick demo of the onboarding flow against a running server."""

import os
import sys

import requests

BASE_URL = os.environ.get("ONBOARDING_URL", "http://localhost:3849")
API_TOKEN = os.environ.get("API_TOKEN", "")
ADMIN_HEADERS = {"Authorization": f"Bearer {API_TOKEN}"}

# Public key of the secp256k1 generator point; only useful for demos.
DEMO_NPUB = "npub10xlxvlhemja6c4dqv22uapctqupfhlxm9h8z3k2e72q4k9hcz7vqpkge6d"

if not API_TOKEN:
    print("Set API_TOKEN to the server's admin token first.")
    sys.exit(1)

print("=" * 80)
print(" ONBOARDING DEMO")
print("=" * 80)

# Test 1: Health
print("\n1. Checking health...")
response = requests.get(f"{BASE_URL}/health")
print(f"Status: {response.status_code} {response.json()}")

# Test 2: Create invite without a token (should fail with 401)
print("\n2. Creating invite without admin token (should get 401)...")
response = requests.post(f"{BASE_URL}/invites", json={"label": "Demo"})
print(f"Status: {response.status_code}")
if response.status_code == 401:
    print("✅ Correctly rejected")

# Test 3: Create invite
print("\n3. Creating invite...")
response = requests.post(f"{BASE_URL}/invites", json={"label": "Demo Store"}, headers=ADMIN_HEADERS)
print(f"Status: {response.status_code}")
if response.status_code != 201:
    print(f"Response: {response.text}")
    sys.exit(1)
invite = response.json()
print("✅ Invite created!")
print(f"   Token: {invite['token']}")
print(f"   Link:  {invite['inviteUrl']}")

# Test 4: Register with the invite
print("\n4. Registering Demo Store...")
registration = {
    "invite": invite["token"],
    "storeName": "Demo Store",
    "npub": DEMO_NPUB,
    "wooUrl": "https://demo-store.example.com",
    "email": "owner@demo-store.example.com"
}
response = requests.post(f"{BASE_URL}/register", json=registration)
print(f"Status: {response.status_code}")
if response.status_code == 200:
    data = response.json()
    print("✅ Registered!")
    print(f"   Webhook URL: {data['webhookUrl']}")
    print(f"   Webhook secret: {data['webhookSecret'][:8]}... (paste into the plugin settings)")
else:
    print(f"Response: {response.text}")

# Test 5: Reuse the invite (should fail with 409)
print("\n5. Reusing the invite (should get 409)...")
response = requests.post(f"{BASE_URL}/register", json=registration)
print(f"Status: {response.status_code}")
if response.status_code == 409:
    print("✅ Invite correctly rejected as already used")

# Test 6: List invites
print("\n6. Listing invites...")
response = requests.get(f"{BASE_URL}/invites", headers=ADMIN_HEADERS)
for token, record in response.json()["invites"].items():
    state = f"used by {record['usedBy']}" if record["used"] else "unused"
    print(f"   {token}  {record.get('label') or '-':<20} {state}")

print("\n" + "=" * 80)
print(" Demo complete!")
print("=" * 80)
