#!/usr/bin/env python3
"""
Seed script to create a demo menu for Messenger ordering
"""

import asyncio
from decimal import Decimal


DEMO_MENU = [
    {"name": "Chicken Adobo", "description": "Braised in soy, vinegar and garlic", "price": "120.00", "today": True},
    {"name": "Pork Sinigang", "description": "Sour tamarind soup with vegetables", "price": "150.00", "today": True},
    {"name": "Pancit Canton", "description": "Stir-fried egg noodles", "price": "95.00", "today": True},
    {"name": "Lumpiang Shanghai", "description": None, "price": "80.00", "today": True},
    {"name": "Beef Caldereta", "description": "Beef stew in tomato sauce", "price": "180.00", "today": False},
    {"name": "Halo-Halo", "description": "Shaved ice dessert", "price": "75.00", "today": True},
    {"name": "Garlic Rice", "description": None, "price": "25.00", "today": True},
]


async def seed_demo_data():
    """Seed demo data for development"""
    from sqlalchemy import select

    from chatorder.database import SessionLocal, engine, Base
    from chatorder.models.menu import MenuItem

    if engine is None:
        print("DATABASE_URL is not set. Nothing to seed.")
        return

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with SessionLocal() as db:
        # Check if the demo menu already exists
        result = await db.execute(
            select(MenuItem).where(MenuItem.name == DEMO_MENU[0]["name"])
        )
        if result.scalar_one_or_none():
            print("Demo data already exists. Skipping...")
            return

        print("Creating demo menu...")

        for item_data in DEMO_MENU:
            db.add(MenuItem(
                name=item_data["name"],
                description=item_data["description"],
                price=Decimal(item_data["price"]),
                is_available=True,
                is_today_menu=item_data["today"],
            ))

        await db.commit()

        served_today = sum(1 for item in DEMO_MENU if item["today"])
        print(f"""
Demo data created successfully!

Menu: {len(DEMO_MENU)} items created, {served_today} on today's menu

Message your page "menu" to see today's dishes.
""")


if __name__ == "__main__":
    asyncio.run(seed_demo_data())
