"""Word lists for anonymous user names ("Teal Otter")."""

COLORS = (
    "Amber", "Aqua", "Azure", "Beige", "Black", "Blue", "Bronze", "Brown",
    "Coral", "Crimson", "Cyan", "Gold", "Gray", "Green", "Indigo", "Ivory",
    "Jade", "Lavender", "Lemon", "Lilac", "Lime", "Magenta", "Maroon", "Mint",
    "Navy", "Olive", "Orange", "Peach", "Pink", "Plum", "Purple", "Red",
    "Rose", "Ruby", "Rust", "Salmon", "Sand", "Scarlet", "Silver", "Tan",
    "Teal", "Turquoise", "Violet", "White", "Yellow",
)

ANIMALS = (
    "Alligator", "Alpaca", "Badger", "Bear", "Beaver", "Bison", "Camel",
    "Cheetah", "Chipmunk", "Cougar", "Coyote", "Crow", "Deer", "Dolphin",
    "Duck", "Eagle", "Elephant", "Falcon", "Ferret", "Fox", "Frog", "Giraffe",
    "Gopher", "Hawk", "Hedgehog", "Heron", "Hippo", "Jackal", "Kangaroo",
    "Koala", "Lemur", "Leopard", "Lion", "Llama", "Lynx", "Moose", "Narwhal",
    "Otter", "Owl", "Panda", "Panther", "Penguin", "Rabbit", "Raccoon",
    "Raven", "Seal", "Shark", "Sloth", "Squirrel", "Tiger", "Turtle",
    "Walrus", "Wolf", "Wombat", "Zebra",
)
