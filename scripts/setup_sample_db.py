"""Launch sample PostgreSQL and Redis containers for trying d2j locally."""

from __future__ import annotations

import argparse
import subprocess
import sys
import time
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from d2j.config import RedisSettings, config_path, load_config, save_config

POSTGRES_CONTAINER = "d2j-sample-db"
REDIS_CONTAINER = "d2j-sample-redis"
POSTGRES_IMAGE = "postgres:16-alpine"
REDIS_IMAGE = "redis:7-alpine"
DEFAULT_PG_PORT = 5544
DEFAULT_REDIS_PORT = 6380
DEFAULT_USER = "d2j"
DEFAULT_PASSWORD = "d2j"
DEFAULT_DB = "d2j_demo"

SEED_SQL = """
CREATE TABLE IF NOT EXISTS customers (
    id SERIAL PRIMARY KEY,
    name TEXT NOT NULL,
    email TEXT NOT NULL UNIQUE,
    created_at TIMESTAMPTZ DEFAULT now()
);
CREATE TABLE IF NOT EXISTS products (
    id SERIAL PRIMARY KEY,
    title TEXT NOT NULL,
    price NUMERIC(10,2) NOT NULL,
    tags TEXT[] DEFAULT '{}'
);
CREATE TABLE IF NOT EXISTS orders (
    id SERIAL PRIMARY KEY,
    customer_id INTEGER REFERENCES customers(id),
    product_id INTEGER REFERENCES products(id),
    quantity INTEGER NOT NULL DEFAULT 1,
    shipped BOOLEAN NOT NULL DEFAULT false
);
INSERT INTO customers (name, email) VALUES
    ('Anna', 'anna@example.com'),
    ('Ben', 'ben@example.com'),
    ('Cara', 'cara@example.com')
ON CONFLICT DO NOTHING;
INSERT INTO products (title, price, tags)
SELECT title, price, tags FROM (VALUES
    ('Notebook', 4.50, ARRAY['paper']),
    ('Fountain pen', 32.00, ARRAY['ink', 'gift']),
    ('Desk lamp', 27.99, ARRAY['light'])
) AS seed(title, price, tags)
WHERE NOT EXISTS (SELECT 1 FROM products);
INSERT INTO orders (customer_id, product_id, quantity, shipped)
SELECT c.id, p.id, 1 + (c.id + p.id) % 3, (c.id + p.id) % 2 = 0
FROM customers c CROSS JOIN products p
WHERE NOT EXISTS (SELECT 1 FROM orders);
""".strip()


def run(cmd: list[str], *, check: bool = True, **kwargs) -> subprocess.CompletedProcess[str]:
    print("$", " ".join(cmd))
    return subprocess.run(cmd, check=check, text=True, **kwargs)


def container_exists(name: str) -> bool:
    result = subprocess.run(
        ["docker", "ps", "-a", "--filter", f"name={name}", "--format", "{{.ID}}"],
        text=True,
        capture_output=True,
    )
    return bool(result.stdout.strip())


def start_container(name: str, image: str, port_mapping: str, env: dict[str, str]) -> None:
    if container_exists(name):
        print(f"Container '{name}' already exists. Reusing it.")
        run(["docker", "start", name], check=False)
        return
    cmd = ["docker", "run", "-d", "--name", name, "-p", port_mapping]
    for key, value in env.items():
        cmd.extend(["-e", f"{key}={value}"])
    cmd.append(image)
    run(cmd)


def wait_until(probe: list[str], label: str, retries: int = 15, delay: float = 1.0) -> None:
    for _ in range(retries):
        if subprocess.run(probe, text=True, capture_output=True).returncode == 0:
            return
        time.sleep(delay)
    print(f"Warning: {label} did not report ready state; continuing anyway.")


def seed_data(name: str, database: str, user: str) -> None:
    run(
        ["docker", "exec", "-i", name, "psql", "-U", user, "-d", database, "-v", "ON_ERROR_STOP=1"],
        input=SEED_SQL,
    )


def update_config(redis_port: int) -> None:
    settings = load_config()
    redis = RedisSettings(host="localhost", port=redis_port)
    if settings.store == "redis" and settings.redis == redis:
        print("Config already points at the sample Redis; leaving as-is.")
        return
    save_config(settings.model_copy(update={"store": "redis", "redis": redis}))
    print(f"Pointed the session store at localhost:{redis_port} in {config_path()}.")


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--pg-port", type=int, default=DEFAULT_PG_PORT, help="Host port to expose Postgres on")
    parser.add_argument("--redis-port", type=int, default=DEFAULT_REDIS_PORT, help="Host port to expose Redis on")
    parser.add_argument("--password", default=DEFAULT_PASSWORD, help="Postgres password")
    parser.add_argument("--database", default=DEFAULT_DB, help="Database name to create")
    parser.add_argument("--user", default=DEFAULT_USER, help="Database user")
    parser.add_argument("--skip-config", action="store_true", help="Leave the d2j config file untouched")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv or sys.argv[1:])
    try:
        start_container(
            POSTGRES_CONTAINER,
            POSTGRES_IMAGE,
            f"{args.pg_port}:5432",
            {"POSTGRES_PASSWORD": args.password, "POSTGRES_DB": args.database, "POSTGRES_USER": args.user},
        )
        start_container(REDIS_CONTAINER, REDIS_IMAGE, f"{args.redis_port}:6379", {})
        wait_until(["docker", "exec", POSTGRES_CONTAINER, "pg_isready", "-U", args.user], "Postgres")
        wait_until(["docker", "exec", REDIS_CONTAINER, "redis-cli", "ping"], "Redis")
        seed_data(POSTGRES_CONTAINER, args.database, args.user)
    except FileNotFoundError:
        print("Docker is not installed or not on PATH.")
        return 1
    if not args.skip_config:
        update_config(args.redis_port)
    print("Sample database is ready. Fill the connection form with:")
    print(f"  host=localhost port={args.pg_port} database={args.database}")
    print(f"  username={args.user} password={args.password} ssl=off")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
