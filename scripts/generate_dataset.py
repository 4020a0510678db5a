"""
CRM/ERP Extract Generator
Generates the six raw CSV extracts, defects included (duplicates,
stray whitespace, bad date keys, inconsistent sales amounts)
"""

import random
from datetime import date, timedelta
from pathlib import Path

import numpy as np
import polars as pl
from faker import Faker

fake = Faker()
random.seed(42)
np.random.seed(42)
Faker.seed(42)

OUTPUT_DIR = Path(__file__).parent.parent / "data" / "raw"
CRM_DIR = OUTPUT_DIR / "source_crm"
ERP_DIR = OUTPUT_DIR / "source_erp"
CRM_DIR.mkdir(parents=True, exist_ok=True)
ERP_DIR.mkdir(parents=True, exist_ok=True)

FIRST_CUSTOMER_ID = 11000

CATEGORIES = [
    ("AC_BR", "Accessories", "Bike Racks", "Yes"),
    ("AC_HE", "Accessories", "Helmets", "Yes"),
    ("BI_MB", "Bikes", "Mountain Bikes", "Yes"),
    ("BI_RB", "Bikes", "Road Bikes", "Yes"),
    ("BI_TB", "Bikes", "Touring Bikes", "Yes"),
    ("CL_JE", "Clothing", "Jerseys", "No"),
    ("CL_SO", "Clothing", "Socks", "No"),
    ("CO_RF", "Components", "Road Frames", "Yes"),
]


def _messy(value: str, rate: float = 0.05) -> str:
    """Pad a value with stray whitespace now and then"""
    if random.random() < rate:
        return f"  {value} "
    return value


def _date_key(d: date) -> int:
    return int(d.strftime("%Y%m%d"))


# ==========================================
# CRM CUSTOMERS
# ==========================================
def generate_cust_info(n=5000):
    print(f"📊 Generating {n:,} CRM customers...")

    ids = list(range(FIRST_CUSTOMER_ID, FIRST_CUSTOMER_ID + n))
    created = [fake.date_between(date(2025, 1, 1), date(2026, 6, 30)) for _ in ids]

    rows = {
        "cst_id": ids,
        "cst_key": [f"AW{i:08d}" for i in ids],
        "cst_firstname": [_messy(fake.first_name()) for _ in ids],
        "cst_lastname": [_messy(fake.last_name()) for _ in ids],
        "cst_marital_status": np.random.choice(["M", "S", "m", " S", None], n, p=[0.45, 0.45, 0.03, 0.02, 0.05]).tolist(),
        "cst_gndr": np.random.choice(["M", "F", "f", None], n, p=[0.45, 0.45, 0.02, 0.08]).tolist(),
        "cst_create_date": [d.isoformat() for d in created],
    }
    df = pl.DataFrame(rows, schema_overrides={"cst_id": pl.Int64})

    # Re-extracted profiles: same id, later create date
    dupes = df.sample(n=max(1, n // 100), seed=42).with_columns(
        (pl.col("cst_create_date").str.to_date() + pl.duration(days=30)).dt.to_string("%Y-%m-%d"),
        pl.col("cst_lastname").str.to_uppercase(),
    )
    orphans = df.head(3).with_columns(pl.lit(None, dtype=pl.Int64).alias("cst_id"))
    df = pl.concat([df, dupes, orphans])

    df.write_csv(CRM_DIR / "cust_info.csv")
    print(f"   ✅ cust_info.csv: {len(df):,} rows")
    return ids


# ==========================================
# CRM PRODUCTS
# ==========================================
def generate_prd_info(n=300):
    print(f"📊 Generating {n:,} CRM product versions...")

    rows = []
    prd_id = 200
    lines = ["M", "R", "S", "T", "", " R "]
    for i in range(n):
        category_id = random.choice(CATEGORIES)[0]
        number = f"{fake.bothify('??-####').upper()}-{random.choice([38, 42, 44, 48, 52, 58])}"
        key = f"{category_id.replace('_', '-')}-{number}"
        name = _messy(f"{fake.word().title()} {fake.word().title()}")
        line = random.choice(lines)
        start = fake.date_between(date(2011, 1, 1), date(2013, 6, 30))

        # Versions share a key; raw end dates are unreliable
        for _ in range(np.random.choice([1, 2, 3], p=[0.6, 0.3, 0.1])):
            cost = None if random.random() < 0.02 else round(float(np.random.uniform(1, 1500)), 2)
            end = start - timedelta(days=random.randint(1, 365)) if random.random() < 0.5 else None
            rows.append({
                "prd_id": prd_id,
                "prd_key": key,
                "prd_nm": name,
                "prd_cost": cost,
                "prd_line": line,
                "prd_start_dt": start.isoformat(),
                "prd_end_dt": end.isoformat() if end else None,
            })
            prd_id += 1
            start = start + timedelta(days=random.randint(180, 720))

    df = pl.DataFrame(rows, schema_overrides={"prd_cost": pl.Float64})
    df.write_csv(CRM_DIR / "prd_info.csv")
    print(f"   ✅ prd_info.csv: {len(df):,} rows")
    return df["prd_key"].str.slice(6).unique().to_list()


# ==========================================
# CRM SALES
# ==========================================
def generate_sales_details(n=20000, customer_ids=None, product_numbers=None):
    print(f"📊 Generating {n:,} CRM sales lines...")

    order_dates = [fake.date_between(date(2010, 12, 29), date(2014, 1, 28)) for _ in range(n)]
    quantity = np.random.choice([1, 2, 3], n, p=[0.9, 0.08, 0.02])
    price = np.random.uniform(2, 3500, n).round(0)
    sales = quantity * price

    order_keys = [_date_key(d) for d in order_dates]
    # Broken date keys: zero, truncated or out of calendar
    for i in np.random.choice(n, size=n // 200, replace=False):
        order_keys[i] = random.choice([0, 3232, 20131340, -1])

    price_noise = np.random.random(n)
    price = np.where(price_noise < 0.01, -price, price)
    price = np.where((price_noise >= 0.01) & (price_noise < 0.02), 0, price)
    sales_noise = np.random.random(n)
    sales = np.where(sales_noise < 0.01, sales + 10, sales)
    sales = np.where((sales_noise >= 0.01) & (sales_noise < 0.02), 0, sales)

    df = pl.DataFrame({
        "sls_ord_num": [_messy(f"SO{43697 + i // 3}", rate=0.01) for i in range(n)],
        "sls_prd_key": np.random.choice(product_numbers, n).tolist(),
        "sls_cust_id": np.random.choice(customer_ids, n).tolist(),
        "sls_order_dt": order_keys,
        "sls_ship_dt": [_date_key(d + timedelta(days=7)) for d in order_dates],
        "sls_due_dt": [_date_key(d + timedelta(days=12)) for d in order_dates],
        "sls_sales": sales,
        "sls_quantity": quantity,
        "sls_price": price,
    })
    # Price missing outright for some lines
    df = df.with_columns(
        pl.when(pl.int_range(pl.len()) % 250 == 0).then(None).otherwise(pl.col("sls_price")).alias("sls_price")
    )

    df.write_csv(CRM_DIR / "sales_details.csv")
    print(f"   ✅ sales_details.csv: {len(df):,} rows")
    return df


# ==========================================
# ERP CUSTOMERS / LOCATIONS / CATEGORIES
# ==========================================
def generate_cust_az12(customer_ids):
    print(f"📊 Generating {len(customer_ids):,} ERP demographics...")

    n = len(customer_ids)
    births = [fake.date_of_birth(minimum_age=18, maximum_age=90) for _ in customer_ids]
    # A handful of birth dates in the future
    for i in np.random.choice(n, size=max(1, n // 500), replace=False):
        births[i] = date(2030 + random.randint(0, 20), 1, 1)

    df = pl.DataFrame({
        "CID": [
            f"NASAW{i:08d}" if random.random() < 0.7 else f"AW{i:08d}"
            for i in customer_ids
        ],
        "BDATE": [d.isoformat() for d in births],
        "GEN": np.random.choice(["Male", "Female", "M", "F", " ", None], n, p=[0.4, 0.4, 0.05, 0.05, 0.05, 0.05]).tolist(),
    })
    df.write_csv(ERP_DIR / "CUST_AZ12.csv")
    print(f"   ✅ CUST_AZ12.csv: {len(df):,} rows")


def generate_loc_a101(customer_ids):
    print(f"📊 Generating {len(customer_ids):,} ERP locations...")

    n = len(customer_ids)
    countries = ["Germany", "DE", "United States", "US", "USA", "Australia", "Canada", "France", "United Kingdom", "", " "]
    weights = [0.1, 0.05, 0.2, 0.05, 0.05, 0.2, 0.1, 0.1, 0.1, 0.03, 0.02]

    df = pl.DataFrame({
        "CID": [f"AW-{i:08d}" for i in customer_ids],
        "CNTRY": np.random.choice(countries, n, p=weights).tolist(),
    })
    df.write_csv(ERP_DIR / "LOC_A101.csv")
    print(f"   ✅ LOC_A101.csv: {len(df):,} rows")


def generate_px_cat_g1v2():
    print(f"📊 Generating {len(CATEGORIES):,} ERP categories...")

    df = pl.DataFrame(
        [{"ID": c[0], "CAT": c[1], "SUBCAT": c[2], "MAINTENANCE": c[3]} for c in CATEGORIES]
    )
    df.write_csv(ERP_DIR / "PX_CAT_G1V2.csv")
    print(f"   ✅ PX_CAT_G1V2.csv: {len(df):,} rows")


# ==========================================
# MAIN
# ==========================================
def main():
    print("=" * 60)
    print("🏭 CRM/ERP Extract Generator")
    print("=" * 60 + "\n")

    customer_ids = generate_cust_info(5000)
    product_numbers = generate_prd_info(300)

    generate_sales_details(20000, customer_ids, product_numbers)
    generate_cust_az12(customer_ids)
    generate_loc_a101(customer_ids)
    generate_px_cat_g1v2()

    # Summary
    print("\n" + "=" * 60)
    print("✅ Extract Generation Complete!")
    print("=" * 60)
    print(f"\n📁 Output: {OUTPUT_DIR}\n")

    total = 0
    for f in sorted(OUTPUT_DIR.glob("*/*.csv")):
        size = f.stat().st_size / 1024 / 1024
        with open(f, 'r') as file:
            rows = sum(1 for _ in file) - 1
        total += rows
        print(f"   📄 {f.parent.name}/{f.name}: {rows:,} rows ({size:.2f} MB)")

    print(f"\n📊 Total: {total:,} rows")


if __name__ == "__main__":
    main()
