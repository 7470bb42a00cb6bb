"""
Test data generators for bplist decoding benchmarks.

Creates various property list documents encoded as bplist00:
- Different sizes (small/large)
- Different complexity levels (flat/nested/mixed)
- Key-heavy content where string pooling pays off
"""

import datetime
import plistlib
import random
import string
from typing import Any

# Constants for random data generation
_INT_TYPE = 1
_FLOAT_TYPE = 2
_STRING_TYPE = 3
_BOOL_TYPE = 4
_DATE_TYPE = 5

DATA_TYPES = [
    "small_object",
    "large_object",
    "mixed_array",
    "nested_structure",
    "key_heavy",
]


def generate_test_data(data_type: str) -> bytes:
    """Generates a bplist00 document of the specified type."""
    generators = {
        "small_object": _generate_small_object,
        "large_object": _generate_large_object,
        "mixed_array": _generate_mixed_array,
        "nested_structure": _generate_nested_structure,
        "key_heavy": _generate_key_heavy,
    }

    if data_type not in generators:
        raise ValueError(f"Unknown data type: {data_type}")

    return plistlib.dumps(generators[data_type](), fmt=plistlib.FMT_BINARY)


def _generate_small_object() -> dict[str, Any]:
    """Generates a small settings-style dictionary (< 1KB encoded)."""
    return {
        "CFBundleIdentifier": "com.example.alice",
        "CFBundleVersion": "1.4.2",
        "LSMinimumSystemVersion": "10.15",
        "NSHighResolutionCapable": True,
        "WindowFrame": 1234.56,
        "RecentDocuments": ["report.txt", "notes.md", "budget.numbers"],
    }


def _generate_large_object() -> dict[str, Any]:
    """Generates a large dictionary (> 10KB encoded) with many fields."""
    return {
        "library_id": random.randint(1000000, 9999999),
        "tracks": [
            {
                "Track ID": i,
                "Name": _random_string(20),
                "Artist": _random_string(12),
                "Album": _random_string(16),
                "Total Time": random.randint(60000, 600000),
                "Play Count": random.randint(0, 500),
                "Rating": random.choice([20, 40, 60, 80, 100]),
                "Date Added": _random_date(),
                "Loved": random.choice([True, False]),
            }
            for i in range(100)
        ],
        "playlists": {
            _random_string(10): [random.randint(0, 99) for _ in range(20)]
            for _ in range(10)
        },
    }


def _generate_mixed_array() -> list[Any]:
    """Generates a large array with mixed data types."""
    array: list[Any] = []

    for i in range(500):
        choice = random.randint(1, 6)
        if choice == _INT_TYPE:
            array.append(random.randint(-1000, 100000))
        elif choice == _FLOAT_TYPE:
            array.append(round(random.uniform(-100.0, 100.0), 3))
        elif choice == _STRING_TYPE:
            array.append(_random_string(random.randint(5, 30)))
        elif choice == _BOOL_TYPE:
            array.append(random.choice([True, False]))
        elif choice == _DATE_TYPE:
            array.append(_random_date())
        else:
            array.append(
                {
                    "index": i,
                    "value": _random_string(10),
                    "score": round(random.uniform(0, 100), 2),
                }
            )

    return array


def _generate_nested_structure() -> dict[str, Any]:
    """Generates a deeply nested dictionary tree."""

    def create_nested_dict(depth: int) -> dict[str, Any]:
        if depth <= 0:
            return {"value": _random_string(10)}

        return {
            "level": depth,
            "data": _random_string(15),
            "items": [create_nested_dict(depth - 1) for _ in range(3)],
            "nested": create_nested_dict(depth - 1),
        }

    return create_nested_dict(6)


def _generate_key_heavy() -> list[dict[str, Any]]:
    """Generates many dictionaries sharing a small key vocabulary."""
    keys = [f"Key{_random_string(12)}" for _ in range(12)]
    return [
        {key: _random_string(random.randint(16, 40)) for key in keys}
        for _ in range(200)
    ]


def _random_date() -> datetime.datetime:
    """Generates a whole-second naive UTC datetime."""
    return datetime.datetime(2020, 1, 1) + datetime.timedelta(
        seconds=random.randint(0, 10**8)
    )


def _random_string(length: int) -> str:
    """Generates a random string of specified length."""
    return "".join(random.choices(string.ascii_letters, k=length))
