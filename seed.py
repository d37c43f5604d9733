"""
Seed an empty database with the initial portfolio content.

Run with: python seed.py  (DATABASE_URL and DATABASE_NAME must be set)

Each collection is written in one batch. If a later batch fails the earlier
ones stay committed and the script exits with status 1.
"""

import sys
from datetime import datetime
from typing import Optional

from pymongo.errors import PyMongoError

from database import COLLECTIONS, SINGLETON_ID, Backend, ensure_indexes
from errors import PortfolioError
from logger import get_logger
from schemas import AboutContentUpdate, GalleryItemInput, ProjectInput, SiteConfigUpdate

logger = get_logger("seed")

PROJECTS = [
    {
        "title": "Frieda en Rus",
        "slug": "frieda-en-rus",
        "tagline": "Saddle up for style.",
        "shortDescription": "A post-post apocalyptic wilderness. Welcome to the Wild West of the Nieu-Transvaal.",
        "fullDescription": (
            "Set in the barren wastelands of the post-post-apocalyptic Free State, Frieda en Rus is a "
            "short-form narrative exploring survival, identity and the enduring spirit of South African culture."
        ),
        "category": "animation",
        "images": [
            {"url": "/images/Early_Concept_Exploration.jpg", "alt": "Early concept exploration", "type": "concept"},
            {"url": "/images/Hansie_Front.jpg", "alt": "Hansie character front view", "type": "character"},
            {"url": "/images/Whipshot_Rifle.jpg", "alt": "Whipshot rifle design", "type": "prop"},
        ],
        "metadata": {"technologies": ["Maya", "ZBrush", "Substance Painter", "Arnold"], "duration": "10 months"},
        "featured": True,
        "displayOrder": 1,
        "status": "published",
    },
    {
        "title": "Nou Gaan Ons Braai",
        "slug": "braai",
        "tagline": "A classic South African phrase.",
        "shortDescription": "Celebrating the South African braai through character design and world-building.",
        "fullDescription": (
            "Through character design and environmental storytelling, the project captures the warmth, "
            "community and sensory experience of gathering around the fire."
        ),
        "category": "character-design",
        "images": [
            {"url": "/images/Coal_Stove_Presentation.jpg", "alt": "Coal stove presentation", "type": "prop"},
            {"url": "/images/Lantern_Presentation.jpg", "alt": "Lantern presentation", "type": "prop"},
        ],
        "metadata": {"technologies": ["Maya", "Substance Painter", "Photoshop"], "duration": "6 months"},
        "featured": True,
        "displayOrder": 2,
        "status": "published",
    },
    {
        "title": "The Professor",
        "slug": "professor",
        "tagline": "From concept to character.",
        "shortDescription": "A character study of Dr. Johann Hagen, from concept sketches to a finished 3D character.",
        "fullDescription": (
            "Dr. Johann Hagen, known simply as \"The Professor\", began as a simple sketch and evolved into "
            "a detailed character study documenting every stage of development."
        ),
        "category": "diorama",
        "images": [{"url": "/images/Johan_Hagen_Bust.jpg", "alt": "Johan Hagen bust render", "type": "character"}],
        "metadata": {"technologies": ["ZBrush", "Maya", "Substance Painter", "Arnold"], "duration": "4 months"},
        "featured": True,
        "displayOrder": 3,
        "status": "published",
    },
    {
        "title": "Unexpected Visitors",
        "slug": "unexpected-visitors",
        "tagline": "If aliens ever did come to earth they'd come to SA first.",
        "shortDescription": "Humanoid visitors arrive in Cape Town, blending South African culture with sci-fi intrigue.",
        "fullDescription": (
            "What if first contact happened in Cape Town? A collaborative project imagining otherworldly "
            "visitors against the backdrop of Table Mountain."
        ),
        "category": "collaborative",
        "images": [],
        "metadata": {
            "technologies": ["Maya", "ZBrush", "After Effects"],
            "duration": "8 months",
            "collaborators": ["Team collaboration project"],
        },
        "featured": True,
        "displayOrder": 4,
        "status": "published",
    },
]

GALLERY = [
    ("For Hano", "character-art", "/images/For-Hano.jpg"),
    ("Michael Picture", "personal-work", "/images/Michael_Picture.jpg"),
    ("Matias Woord", "finished-pieces", "/images/Matias_Woord.webp"),
    ("Wian Woord Final", "character-art", "/images/Wian_WoordFinal.jpg"),
    ("Tannie Ella Woord", "character-art", "/images/Tannie_Ella_Woord.jpg"),
    ("Sunette Doodle", "sketches", "/images/Sunette_Doodle.jpg"),
    ("Hansie Front", "character-art", "/images/Hansie_Front.jpg"),
    ("Johan Hagen Bust", "character-art", "/images/Johan_Hagen_Bust.jpg"),
    ("Whipshot Rifle", "concept-art", "/images/Whipshot_Rifle.jpg"),
    ("Lantern Presentation", "finished-pieces", "/images/Lantern_Presentation.jpg"),
    ("Coal Stove", "finished-pieces", "/images/Coal_Stove_Presentation.jpg"),
    ("Early Concept Exploration", "concept-art", "/images/Early_Concept_Exploration.jpg"),
]

SITE_CONFIG = {
    "siteInfo": {
        "siteName": "iwan.crafford",
        "tagline": "Simply Beautiful - Finding Beauty in the Ordinary",
        "description": "3D Animation Portfolio showcasing western-inspired animations and fine art",
        "ownerName": "Iwan Crafford",
    },
    "contactInfo": {
        "email": "iwan.crafford@gmail.com",
        "phone": "+27 73 824 0610",
        "location": "Blouberg, Western Cape",
    },
    "socialLinks": [
        {"platform": "instagram", "url": "https://www.instagram.com/thegreatbig_scrapbook", "display": True},
        {"platform": "linkedin", "url": "https://www.linkedin.com/in/iwancrafford/", "display": True},
    ],
    "navigation": [
        {"label": "Projects", "href": "/projects", "order": 1},
        {"label": "About", "href": "/about", "order": 2},
        {"label": "Gallery", "href": "/gallery", "order": 3},
        {"label": "Contact", "href": "/contact", "order": 4},
    ],
    "footer": {"copyright": f"All rights reserved © {datetime.now().year} Iwan Crafford."},
}

ABOUT = {
    "heroTitle": "A perfectly ordinary name...",
    "heroSubtitle": "that speaks to a most extraordinary journey...",
    "bioText": (
        "I'm a 3D animation student with a passion for bringing characters to life. My work explores "
        "South African culture, western aesthetics and the beauty found in everyday moments."
    ),
    "sections": [
        {
            "id": "intro",
            "title": "The Beginning",
            "content": "I was born in 2003, in Mbombela. From a young age I was drawn to art and storytelling.",
            "order": 1,
            "images": [{"url": "/images/about-1.jpg", "alt": "Young Iwan sketching", "alignment": "right"}],
        },
        {
            "id": "growth",
            "title": "Finding My Path",
            "content": "My sketches grew into character designs, and then I discovered 3D animation.",
            "order": 2,
            "images": [{"url": "/images/about-2.jpg", "alt": "Working on 3D projects", "alignment": "left"}],
        },
        {
            "id": "present",
            "title": "Simply Beautiful",
            "content": "Today my work is guided by a simple philosophy: finding beauty in the ordinary.",
            "order": 3,
            "images": [{"url": "/images/about-3.jpg", "alt": "Current work", "alignment": "right"}],
        },
    ],
}


def _dump(model) -> dict:
    return model.model_dump(by_alias=True, exclude_none=True)


def seed_projects(backend: Backend) -> int:
    now = backend.now()
    docs = [{**_dump(ProjectInput.model_validate(p)), "createdAt": now, "updatedAt": now} for p in PROJECTS]
    backend.collection(COLLECTIONS["PROJECTS"]).insert_many(docs)
    return len(docs)


def seed_gallery(backend: Backend) -> int:
    now = backend.now()
    docs = []
    for order, (title, category, url) in enumerate(GALLERY, start=1):
        item = GalleryItemInput(title=title, category=category, image={"url": url, "alt": title}, order=order)
        docs.append({**_dump(item), "createdAt": now})
    backend.collection(COLLECTIONS["GALLERY"]).insert_many(docs)
    return len(docs)


def _write_singleton(backend: Backend, name: str, data: dict) -> None:
    doc = {**data, "_id": SINGLETON_ID, "updatedAt": backend.now()}
    backend.collection(name).replace_one({"_id": SINGLETON_ID}, doc, upsert=True)


def seed_site_config(backend: Backend) -> int:
    _write_singleton(backend, COLLECTIONS["SITE_CONFIG"], _dump(SiteConfigUpdate.model_validate(SITE_CONFIG)))
    return 1


def seed_about(backend: Backend) -> int:
    _write_singleton(backend, COLLECTIONS["ABOUT"], _dump(AboutContentUpdate.model_validate(ABOUT)))
    return 1


def main(backend: Optional[Backend] = None) -> int:
    backend = backend or Backend.from_env()
    print("Starting seed...\n")
    steps = [
        ("projects", seed_projects),
        ("gallery items", seed_gallery),
        ("site config", seed_site_config),
        ("about content", seed_about),
    ]
    try:
        for label, step in steps:
            count = step(backend)
            print(f"✓ Seeded {count} {label}")
        ensure_indexes(backend)
    except (PortfolioError, PyMongoError) as exc:
        logger.error("Seeding failed: %s", exc)
        print(f"\n❌ Seeding failed: {exc}")
        return 1
    print("\n✅ Seeding complete!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
