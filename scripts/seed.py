"""Development data seeder: users, categories, articles and products."""
import argparse
import asyncio
import random
import sys
import time
from datetime import timedelta
from decimal import Decimal

from starter_api.config import settings
from starter_api.database import Base, async_session, engine, utcnow
from starter_api.models import Article, ArticleStatus, Category, Product, User
from starter_api.security import PasswordHasher
from starter_api.validators import slugify

SEED_PASSWORD = "password123"

CATEGORIES = ["Engineering", "Product", "Design", "Operations", "Announcements"]
TOPICS = ["python", "fastapi", "postgresql", "redis", "docker", "kubernetes",
          "testing", "performance", "security", "observability"]


async def seed(small: bool = False, reset: bool = False):
    num_users = 5 if small else 25
    num_articles = 50 if small else 1000
    num_products = 20 if small else 500

    print(f"Seeding: {num_users} users, {num_articles} articles, {num_products} products")
    start = time.perf_counter()

    if reset:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)

    # One hash for every seeded account keeps seeding fast.
    password_hash = PasswordHasher(settings.auth.bcrypt_rounds).hash_password(SEED_PASSWORD)

    async with async_session() as session:
        users = []
        for i in range(num_users):
            user = User(
                email=f"user_{i:04d}@example.com",
                username=f"user_{i:04d}",
                full_name=f"User {i}",
                password_hash=password_hash,
            )
            session.add(user)
            users.append(user)
        await session.flush()
        print(f"  Created {len(users)} users (password: {SEED_PASSWORD})")

        categories = []
        for name in CATEGORIES:
            category = Category(name=name, slug=slugify(name), description=f"Posts about {name.lower()}")
            session.add(category)
            categories.append(category)
        await session.flush()
        print(f"  Created {len(categories)} categories")

        for i in range(num_articles):
            topic = random.choice(TOPICS)
            created = utcnow() - timedelta(days=random.randint(0, 365))
            status = random.choices(
                [ArticleStatus.PUBLISHED, ArticleStatus.DRAFT, ArticleStatus.ARCHIVED],
                weights=[8, 1, 1],
            )[0]
            title = f"Article {i}: Getting started with {topic}"
            session.add(
                Article(
                    title=title,
                    slug=f"{slugify(title)}-{i}",
                    content=f"This is the full content of article {i} about {topic}. " * 20,
                    excerpt=f"A practical introduction to {topic}.",
                    featured_image=f"https://images.example.com/{topic}/{i}.png",
                    status=status.value,
                    published_at=created if status != ArticleStatus.DRAFT else None,
                    view_count=random.randint(0, 5000) if status != ArticleStatus.DRAFT else 0,
                    created_at=created,
                    author_id=random.choice(users).id,
                    category_id=random.choice(categories).id,
                )
            )
            if i % 500 == 499:
                await session.flush()
        await session.flush()
        print(f"  Created {num_articles} articles")

        for i in range(num_products):
            session.add(
                Product(
                    name=f"Product {i}",
                    sku=f"SKU-{i:05d}",
                    description=f"Seeded product number {i}.",
                    price=Decimal(random.randint(100, 100000)) / 100,
                    stock=random.randint(0, 250),
                    is_active=random.random() > 0.1,
                )
            )
        await session.commit()
        print(f"  Created {num_products} products")

    await engine.dispose()
    print(f"\nSeeding complete in {time.perf_counter() - start:.1f}s")


def main():
    parser = argparse.ArgumentParser(description="Seed the development database")
    parser.add_argument("--small", action="store_true", help="Use a small dataset")
    parser.add_argument(
        "--reset", action="store_true", help="Drop and recreate all tables before seeding"
    )
    args = parser.parse_args()
    if settings.server.is_production:
        print("Refusing to seed a production database", file=sys.stderr)
        sys.exit(1)
    asyncio.run(seed(small=args.small, reset=args.reset))


if __name__ == "__main__":
    main()
