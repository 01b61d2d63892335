"""
Subject categories and the reference data the placeholder tier draws from.

Placeholders are picked per category so a smartphone query gets phone
brands, an EV query gets carmakers, and so on.
"""

import re
import zlib
from typing import Optional

CATEGORY_KEYWORDS: dict[str, tuple[str, ...]] = {
    "smartphone": (
        "phone", "iphone", "smartphone", "galaxy", "pixel", "oneplus", "xiaomi", "android", "motorola",
    ),
    "electric_vehicle": (
        "tesla", "electric car", "electric vehicle", "ev", "model 3", "model y", "rivian", "lucid", "ioniq",
    ),
    "laptop": (
        "laptop", "macbook", "notebook", "chromebook", "thinkpad", "xps", "ultrabook", "spectre",
    ),
}

# name, price (USD), rating, url, features
CATEGORY_COMPETITORS: dict[str, list[tuple[str, float, float, str, list[str]]]] = {
    "smartphone": [
        ("Apple iPhone 15", 799.00, 4.6, "https://www.apple.com/iphone-15/",
         ["A16 Bionic", "48MP camera", "USB-C", "Dynamic Island"]),
        ("Samsung Galaxy S23", 799.99, 4.5, "https://www.samsung.com/us/smartphones/galaxy-s23/",
         ["120Hz AMOLED", "Snapdragon 8 Gen 2", "Triple camera"]),
        ("Google Pixel 8", 699.00, 4.4, "https://store.google.com/product/pixel_8",
         ["Tensor G3", "7 years of updates", "Magic Eraser"]),
        ("OnePlus 11", 699.99, 4.3, "https://www.oneplus.com/us/11",
         ["100W fast charging", "Hasselblad camera", "120Hz AMOLED"]),
        ("Xiaomi 13T", 649.00, 4.2, "https://www.mi.com/global/product/xiaomi-13t/",
         ["Leica optics", "144Hz display", "67W fast charging"]),
    ],
    "electric_vehicle": [
        ("Tesla Model 3", 38990.00, 4.5, "https://www.tesla.com/model3",
         ["Autopilot", "Supercharger access", "Long range"]),
        ("Chevrolet Bolt EV", 26500.00, 4.2, "https://www.chevrolet.com/electric/bolt-ev",
         ["DC fast charging", "Super Cruise", "Compact design"]),
        ("Hyundai Ioniq 5", 41800.00, 4.6, "https://www.hyundaiusa.com/us/en/vehicles/ioniq-5",
         ["800V ultra-fast charging", "Vehicle-to-load", "Spacious cabin"]),
        ("Ford Mustang Mach-E", 39995.00, 4.3, "https://www.ford.com/suvs/mach-e/",
         ["BlueCruise", "Phone as a key", "Long range"]),
        ("Kia EV6", 42600.00, 4.5, "https://www.kia.com/us/en/ev6",
         ["800V charging", "AWD option", "Augmented reality HUD"]),
    ],
    "laptop": [
        ("Apple MacBook Air M2", 1099.00, 4.7, "https://www.apple.com/macbook-air/",
         ["Apple M2 chip", "18-hour battery", "Fanless design"]),
        ("Dell XPS 13", 999.99, 4.4, "https://www.dell.com/en-us/shop/dell-laptops/xps-13-laptop/",
         ["InfinityEdge display", "Intel Core Ultra", "Lightweight"]),
        ("Lenovo ThinkPad X1 Carbon", 1429.00, 4.5, "https://www.lenovo.com/us/en/p/laptops/thinkpad/thinkpadx1/",
         ["Backlit keyboard", "MIL-STD durability", "Fingerprint reader"]),
        ("HP Spectre x360", 1249.99, 4.3, "https://www.hp.com/us-en/shop/slp/spectre-x360",
         ["2-in-1 touchscreen", "OLED option", "Stylus support"]),
    ],
}

CATEGORY_TRENDS: dict[str, list[tuple[str, int, str, str]]] = {
    "iphone": [
        ("iPhone 15 Pro", 2450000, "increasing", "30d"),
        ("iPhone camera quality", 892000, "stable", "90d"),
        ("iPhone vs Android", 756000, "increasing", "30d"),
    ],
    "tesla": [
        ("Tesla Model 3 price", 1240000, "increasing", "30d"),
        ("Tesla Supercharger network", 540000, "increasing", "90d"),
        ("Tesla stock analysis", 890000, "stable", "30d"),
    ],
}

_WORD_BOUNDARY = r"(?<![a-z0-9]){}(?![a-z0-9])"


def _mentions(text: str, keyword: str) -> bool:
    return re.search(_WORD_BOUNDARY.format(re.escape(keyword)), text) is not None


def detect_category(query_text: str) -> Optional[str]:
    """Category key for the subject, or None for anything unrecognized."""
    lowered = query_text.lower()
    for category, keywords in CATEGORY_KEYWORDS.items():
        if any(_mentions(lowered, keyword) for keyword in keywords):
            return category
    return None


def detect_trend_family(query_text: str) -> Optional[str]:
    lowered = query_text.lower()
    if _mentions(lowered, "iphone") or _mentions(lowered, "apple"):
        return "iphone"
    if _mentions(lowered, "tesla") or _mentions(lowered, "electric car"):
        return "tesla"
    return None


GENERIC_NAME_WORDS = {"model", "phone", "pro", "air", "max", "plus", "mini", "the"}


def brand_tokens(name: str) -> set[str]:
    """Brand and line words from the first two words of a product name."""
    words = name.lower().split()[:2]
    return {
        w for w in (re.sub(r"[^a-z]", "", word) for word in words)
        if len(w) >= 3 and w not in GENERIC_NAME_WORDS
    }


def is_same_brand(subject: str, competitor_name: str) -> bool:
    """True when the competitor shares a brand or line word with the subject."""
    subject_words = set(re.findall(r"[a-z]+", subject.lower()))
    return bool(brand_tokens(competitor_name) & subject_words)


def stable_volume(keyword: str, low: int, high: int) -> int:
    """Deterministic pseudo-volume in [low, high) derived from the keyword."""
    span = max(high - low, 1)
    return low + zlib.crc32(keyword.lower().encode("utf-8")) % span
