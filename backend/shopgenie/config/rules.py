# /shopgenie/config/rules.py

import re

# Vocabulary for the rule-based intent classifier.
# The classifier checks these groups in a fixed order; see services/rule_classifier.py.

# Precompiled regex for performance
WORD_RE = re.compile(r"[\w']+")

ORDER_KEYWORDS_SET = {"order", "buy", "get", "want", "need", "purchase"}
ADD_KEYWORDS_SET = {"add", "include", "more", "also"}
REMOVE_KEYWORDS_SET = {"remove", "delete", "drop", "without"}
AFFIRMATIVE_RESPONSES = {"yes", "y", "yeah", "yep", "ok", "okay", "correct", "right", "sure", "✅"}
NEGATIVE_RESPONSES = {"no", "n", "nope", "nah", "wrong", "incorrect", "not", "❌"}
GREETING_KEYWORDS_SET = {"hi", "hello", "hey", "namaste", "help", "start"}
GREETING_PHRASES = ["what can you do", "how does this work"]
PRICE_KEYWORDS_SET = {"price", "prices", "cost", "costs", "rate", "rates", "compare", "cheapest"}
CART_KEYWORDS_SET = {"cart", "basket"}
AUTH_KEYWORDS_SET = {"login", "connect", "auth", "signin", "link"}
AUTH_PHRASES = ["sign in", "log in"]

# Structured selection syntax the classifier turns into product choices
SELECTION_RE = re.compile(r"^(?P<number>\d+)\s+for\s+(?P<item>.+)$", re.IGNORECASE)
SELECT_ALL_RE = re.compile(r"^all\s+(?P<number>\d+)$", re.IGNORECASE)

# Quantity + unit phrases, e.g. "2 kg rice", "1 litre of milk", "rice 2kg"
UNIT_PATTERN = r"kgs?|kilograms?|g|gms?|grams?|l|ltrs?|liters?|litres?|ml|pcs?|pieces?|packets?|dozen"
QUANTITY_FIRST_RE = re.compile(
    rf"(?P<quantity>\d+(?:\.\d+)?)\s*(?P<unit>{UNIT_PATTERN})\b\s+(?:of\s+)?(?P<name>[a-z][a-z ]*?)(?=\s*(?:,|\band\b|$))",
    re.IGNORECASE,
)
NAME_FIRST_RE = re.compile(
    rf"(?P<name>[a-z][a-z ]*?)\s+(?P<quantity>\d+(?:\.\d+)?)\s*(?P<unit>{UNIT_PATTERN})\b",
    re.IGNORECASE,
)
COUNT_FIRST_RE = re.compile(r"\b(?P<quantity>\d+)\s+(?P<name>[a-z]+)", re.IGNORECASE)

UNIT_ALIASES = {
    "kg": "kg", "kgs": "kg", "kilogram": "kg", "kilograms": "kg",
    "g": "g", "gm": "g", "gms": "g", "gram": "g", "grams": "g",
    "l": "L", "ltr": "L", "ltrs": "L", "liter": "L", "liters": "L", "litre": "L", "litres": "L",
    "ml": "ml",
    "pc": "pc", "pcs": "pc", "piece": "pc", "pieces": "pc", "packet": "pc", "packets": "pc",
    "dozen": "dozen",
}

# Known grocery names. Multi-word entries are matched before single words.
MULTI_WORD_ITEMS = [
    "peanut butter", "chocolate milk", "whole wheat bread", "brown bread", "white bread",
    "full cream milk", "olive oil", "coconut oil", "sunflower oil", "ice cream",
    "green tea", "black tea", "coffee powder", "dried fruits",
]
SINGLE_WORD_ITEMS = {
    "milk", "bread", "eggs", "egg", "tomatoes", "tomato", "onions", "onion", "potatoes", "potato",
    "rice", "sugar", "salt", "oil", "butter", "cheese", "yogurt", "curd", "fruits", "vegetables",
    "apple", "apples", "banana", "bananas", "orange", "oranges", "mango", "mangoes", "grapes",
    "carrot", "carrots", "cucumber", "spinach", "chicken", "fish", "paneer", "tofu", "noodles",
    "pasta", "sauce", "ketchup", "jam", "honey", "chocolate", "biscuits", "cookies", "juice",
    "tea", "coffee", "chips", "snacks", "nuts", "almonds", "cashews", "dal", "atta", "flour",
    "ghee", "masala", "namkeen", "water",
}

# Text following one of these markers may be the delivery address
ADDRESS_MARKER_RE = re.compile(r"\b(?:deliver(?:ed)?\s+to|send\s+to|address\s+is|to|at)\s+", re.IGNORECASE)
UNIT_NUMBER_RE = re.compile(r"\b(?:flat|apartment|unit|room|house|plot)\s*(?:no\.?\s*)?\d+", re.IGNORECASE)
ADDRESS_PREFIXES = ["my address is", "address is", "deliver to", "send to"]
ADDRESS_KEYWORDS = {
    "layout", "sector", "block", "floor", "apartment", "flat", "house", "building",
    "street", "st", "road", "rd", "avenue", "lane", "colony", "nagar", "vihar", "puram",
    "bangalore", "bengaluru", "mumbai", "delhi", "chennai", "kolkata", "pune", "hyderabad",
    "ahmedabad", "jaipur", "lucknow", "noida", "gurgaon", "gurugram", "chandigarh",
}
PINCODE_RE = re.compile(r"\b\d{6}\b")
BUILDING_NUMBER_RE = re.compile(r"\b[a-z]-\d+\b", re.IGNORECASE)
