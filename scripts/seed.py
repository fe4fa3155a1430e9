"""Database seeder: default roles, one account per role, tags, articles and comments."""
import argparse
import asyncio
import random
import time
from datetime import datetime, timedelta, timezone

from app.auth import ADMINISTRATOR, DEFAULT_USER, MODERATOR, hash_password
from app.database import Base, async_session, engine
from app.models import Article, Comment, Tag, User
from app.services import role_service

TAGS = ["python", "fastapi", "postgresql", "redis", "docker", "testing",
        "security", "devops", "design", "career"]

# (first name, last name, email, role); every account uses the password "password".
ACCOUNTS = [
    ("Ada", "Admin", "admin@example.com", ADMINISTRATOR),
    ("Max", "Moderator", "moderator@example.com", MODERATOR),
    ("Una", "User", "user@example.com", DEFAULT_USER),
]


async def seed(num_articles: int):
    print(f"Seeding: {len(ACCOUNTS)} users, {num_articles} articles")
    start = time.perf_counter()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async with async_session() as session:
        roles = await role_service.ensure_default_roles(session)
        print(f"  Roles: {', '.join(roles)}")

        password_hash = hash_password("password")
        users = []
        for first_name, last_name, email, role_name in ACCOUNTS:
            user = User(
                first_name=first_name,
                last_name=last_name,
                email=email,
                phone="+10000000000",
                password_hash=password_hash,
                role_id=roles[role_name]["id"],
            )
            session.add(user)
            users.append(user)

        tags = [Tag(name=name) for name in TAGS]
        session.add_all(tags)
        await session.flush()
        print(f"  Created {len(users)} users and {len(tags)} tags")

        total_comments = 0
        for i in range(num_articles):
            published = datetime.now(timezone.utc) - timedelta(days=random.randint(0, 365))
            topic = random.choice(TAGS)
            article = Article(
                title=f"Article {i}: notes on {topic}",
                content=f"This is the full content of article {i} about {topic}. " * 20,
                view_count=random.randint(0, 500),
                publication_date=published,
                user_id=random.choice(users).id,
            )
            article.tags = random.sample(tags, k=random.randint(1, 3))
            session.add(article)
            await session.flush()

            for _ in range(random.randint(0, 3)):
                session.add(
                    Comment(
                        content="Thanks, this was helpful.",
                        article_id=article.id,
                        user_id=random.choice(users).id,
                    )
                )
                total_comments += 1

        await session.commit()

    elapsed = time.perf_counter() - start
    print(f"\nSeeding complete in {elapsed:.1f}s")
    print(f"  Articles: {num_articles}")
    print(f"  Comments: {total_comments}")


def main():
    parser = argparse.ArgumentParser(description="Seed the blog database")
    parser.add_argument("--articles", type=int, default=30, help="Number of articles to create")
    args = parser.parse_args()
    asyncio.run(seed(args.articles))


if __name__ == "__main__":
    main()
