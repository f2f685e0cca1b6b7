"""Database seeding script."""

from invopt.database import Base, get_database
from invopt.models.item import Item

DEMO_ITEMS = [
    # sku, name, avg_daily_demand, lead_time_days, unit_cost, order_cost
    ("BOLT-M8", "M8 hex bolt (box of 100)", 12.0, 7, 4.50, 40.0),
    ("NUT-M8", "M8 hex nut (box of 100)", 10.5, 7, 2.10, 40.0),
    ("WASH-M8", "M8 washer (box of 200)", 6.0, 10, 1.80, 35.0),
    ("GLOVE-L", "Nitrile gloves, large", 25.0, 5, 8.90, 50.0),
    ("TAPE-50", "Packing tape 50mm", 18.0, 3, 1.25, 25.0),
    ("PALLET-EU", "EUR pallet", 2.0, 14, 11.00, 80.0),
]


def seed_database():
    """Seed database with a demo item catalog."""
    db = get_database()
    Base.metadata.create_all(bind=db.engine)

    with db.session() as session:
        if session.query(Item).filter_by(sku=DEMO_ITEMS[0][0]).first():
            print("Database already seeded. Skipping.")
            return

        for sku, name, demand, lead_time, unit_cost, order_cost in DEMO_ITEMS:
            session.add(Item(
                sku=sku,
                name=name,
                avg_daily_demand=demand,
                lead_time_days=lead_time,
                unit_cost=unit_cost,
                order_cost=order_cost,
                is_active=True,
            ))
            print(f"Created item: {sku} ({name})")

    print("\nDatabase seeded successfully!")


def main():
    print("Starting database seeding...")
    seed_database()


if __name__ == "__main__":
    main()
