"""Manual smoke check against a running HealthyAura backend.

Signs in, prints the profile, points and recommendations, then signs out.
Reads API_BASE_URL etc. from the environment / .env like the client itself.
"""

import asyncio
import getpass

from healthyaura.core.exceptions import AppError
from healthyaura.infrastructure.storage import MemoryStorage
from healthyaura.main import open_client


async def check_session():
    username = input("Username: ").strip()
    password = getpass.getpass("Password: ")

    # throwaway storage so the check never touches a real saved session
    async with open_client(storage=MemoryStorage()) as client:
        print(f"Backend: {client.settings.API_BASE_URL}")
        try:
            credential = await client.session.sign_in(username, password)
        except AppError as e:
            print(f"Sign in failed [{e.reason.value}]: {e.message}")
            return

        print(f"Signed in as {credential.issued_username} ({credential.role.value})")
        user = client.session.user
        print(f"Email: {user.email or '-'} | Preferences: {user.preferences or '-'}")

        try:
            balance = await client.rewards.get_points()
            print(f"Points: {balance.total_points}")
        except AppError as e:
            print(f"Points unavailable: {e.message}")

        recs = await client.recommendations.fetch()
        print(f"Recommended for you: {len(recs.personalized)}")
        for rec in recs.personalized:
            print(f"  - {rec.name} ({', '.join(rec.tags) or 'no tags'})")

        client.session.sign_out()
        print("Signed out")


if __name__ == "__main__":
    asyncio.run(check_session())
