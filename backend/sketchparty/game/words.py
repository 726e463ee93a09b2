from __future__ import annotations

import random
from typing import Sequence


GAME_WORDS = [
    # Animals
    "Cat", "Dog", "Fish", "Bird", "Mouse", "Bear", "Lion", "Tiger", "Elephant", "Rabbit",
    "Horse", "Cow", "Pig", "Sheep", "Duck", "Chicken", "Frog", "Butterfly", "Bee", "Spider",
    # Objects
    "House", "Car", "Bike", "Book", "Phone", "Clock", "Chair", "Table", "Bed", "Door",
    "Window", "Key", "Ball", "Hat", "Shoe", "Cup", "Plate", "Spoon", "Knife", "Fork",
    # Food
    "Apple", "Banana", "Orange", "Grape", "Pizza", "Cake", "Bread", "Cheese", "Egg",
    "Ice Cream", "Cookie", "Candy", "Chocolate", "Hamburger", "Hot Dog", "Sandwich", "Donut", "Pie",
    # Nature
    "Tree", "Flower", "Sun", "Moon", "Star", "Cloud", "Rain", "Snow", "Mountain", "River",
    "Beach", "Ocean", "Fire", "Rainbow", "Lightning", "Wind", "Earth", "Rock", "Grass", "Leaf",
    # Body
    "Eye", "Nose", "Mouth", "Ear", "Hand", "Foot", "Head", "Hair", "Tooth", "Face",
    # Transportation
    "Plane", "Train", "Bus", "Truck", "Boat", "Ship", "Bicycle", "Motorcycle", "Helicopter", "Rocket",
    # Activities
    "Soccer", "Basketball", "Tennis", "Swimming", "Running", "Dancing", "Singing", "Reading", "Writing", "Drawing",
    "Happy", "Sad", "Angry", "Surprised", "Sleeping", "Jumping", "Walking", "Flying", "Eating",
    # Shapes & colors
    "Circle", "Square", "Triangle", "Heart", "Diamond", "Red", "Blue", "Green", "Yellow", "Purple",
    # Harder
    "Guitar", "Piano", "Dinosaur", "Castle", "Princess", "Knight", "Dragon", "Treasure", "Pirate", "Robot",
    "Computer", "Television", "Camera", "Telephone", "Airplane", "Submarine", "Telescope", "Microscope",
    "Calculator", "Refrigerator",
]


def normalize(text: str | None) -> str:
    return (text or "").strip().casefold()


def pick_word(
    words: Sequence[str] = GAME_WORDS,
    exclude: str | None = None,
    rng: random.Random | None = None,
) -> str:
    """Uniformly pick a word, skipping ``exclude`` unless it is the only choice."""
    if not words:
        raise ValueError("word list is empty")
    r = rng or random
    banned = normalize(exclude)
    candidates = [w for w in words if normalize(w) != banned] if banned else list(words)
    return r.choice(candidates or list(words))
