import asyncio
import random
from sqlalchemy import select
from app.db.database import db
from app.models import Paint
from app.models.paint import sku_prefix


# Sample paints: (name, category, size, price, original_price, description, features)
PAINTS_DATA = [
    ("Premium Interior Emulsion", "Interior", "4L", 4500, None,
     "High-quality interior wall paint with excellent coverage", ["Washable", "Low VOC", "Quick Drying"]),
    ("Silk Vinyl Interior", "Interior", "20L", 18500, 21000,
     "Smooth silk finish for living rooms and bedrooms", ["Washable", "Mild Sheen"]),
    ("Weatherproof Exterior Paint", "Exterior", "5L", 6500, None,
     "Durable exterior paint resistant to weather conditions", ["UV Resistant", "Waterproof", "Mold Resistant"]),
    ("Roof Coat Exterior", "Exterior", "20L", 24000, 26500,
     "Heat reflective coating for iron sheet roofs", ["Heat Reflective", "Rust Inhibiting"]),
    ("Universal Primer", "Primer", "4L", 3500, None,
     "Multi-surface primer for better paint adhesion", ["Quick Drying", "Seals Surfaces", "Improves Coverage"]),
    ("Gloss Enamel Paint", "Enamel", "1L", 1800, None,
     "High gloss finish for wood and metal surfaces", ["High Shine", "Durable", "Easy to Clean"]),
    ("Clear Varnish", "Varnish", "1L", 2200, None,
     "Protective clear coat for wooden surfaces", ["Transparent", "Water Resistant", "Enhances Grain"]),
    ("Road Marking Paint", "Others", "20L", 15500, None,
     "Reflective paint for road and parking markings", ["Reflective", "Abrasion Resistant"]),
]

BRAND = "Ruda Paints"


async def seed_database():
    # Create tables
    await db.connect()

    async with db.session_factory() as session:
        # Check if data exists
        result = await session.execute(select(Paint).limit(1))
        if result.scalar():
            print("Database already seeded")
            await db.disconnect()
            return

        for index, (name, category, size, price, original_price, description, features) in enumerate(PAINTS_DATA):
            stock = random.randint(0, 60)
            paint = Paint(
                name=name,
                category=category,
                brand=BRAND,
                size=size,
                price=price,
                original_price=original_price,
                description=description,
                features=features,
                stock_quantity=stock,
                available=stock > 0,
                featured=index % 3 == 0,
                new_arrival=index % 4 == 1,
                sku=f"{sku_prefix(BRAND, category)}-{1000 + index}",
            )
            session.add(paint)

        await session.commit()
        print(f"Seeded {len(PAINTS_DATA)} paints")

    await db.disconnect()


if __name__ == "__main__":
    asyncio.run(seed_database())
