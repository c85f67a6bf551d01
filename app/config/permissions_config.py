"""
Client Permission Catalog Configuration
This config defines the permission catalog professionals can be granted on client data,
the category order used by the read model, and the per-role default permission sets.
Used by the seed script to populate permission_definitions and by invitations for default offers.
"""

# Categories in display order
PERMISSION_CATEGORIES = [
    {"key": "nutrition", "label": "Nutrition"},
    {"key": "workouts", "label": "Workouts"},
    {"key": "weight", "label": "Weight & Body"},
    {"key": "photos", "label": "Progress Photos"},
    {"key": "checkins", "label": "Check-ins"},
    {"key": "fasting", "label": "Fasting"},
    {"key": "profile", "label": "Profile"},
]

CATEGORY_KEYS = [c["key"] for c in PERMISSION_CATEGORIES]

# Shared (read) permissions: any number of professionals may hold them
SHARED_PERMISSIONS = {
    "view_nutrition": ("nutrition", "View Nutrition Logs", "View food logs and intake history", 10),
    "view_workouts": ("workouts", "View Workout Sessions", "View completed workout sessions and exercise history", 20),
    "view_weight": ("weight", "View Weight Data", "View weigh-ins and body measurements", 30),
    "view_progress_photos": ("photos", "View Progress Photos", "View uploaded progress photos", 40),
    "view_fasting": ("fasting", "View Fasting Data", "View fasting history and patterns", 50),
    "view_checkins": ("checkins", "View Check-in Submissions", "View submitted weekly check-ins", 60),
    "view_profile": ("profile", "View Profile Information", "View basic profile information (height, age, etc.)", 70),
}

# Exclusive (write) permissions: at most one professional per client
EXCLUSIVE_PERMISSIONS = {
    "set_nutrition_targets": ("nutrition", "Set Nutrition Targets", "Set calorie, macro, and micronutrient goals", 15),
    "assign_programmes": ("workouts", "Assign Workout Programmes", "Create and assign workout programmes", 25),
    "set_weight_targets": ("weight", "Set Weight Targets", "Set goal weight and body composition targets", 35),
    "set_fasting_schedule": ("fasting", "Set Fasting Schedule", "Configure fasting windows and schedules", 55),
    "assign_checkins": ("checkins", "Assign Check-in Templates", "Assign weekly check-in templates", 65),
}

# Default permission offer per professional role type
ROLE_DEFAULT_PERMISSIONS = {
    "nutritionist": ["view_nutrition", "view_weight", "view_profile", "set_nutrition_targets"],
    "trainer": ["view_workouts", "view_weight", "view_profile", "assign_programmes", "assign_checkins"],
    "coach": [
        "view_nutrition", "view_workouts", "view_weight", "view_progress_photos",
        "view_fasting", "view_checkins", "view_profile", "set_nutrition_targets",
        "set_weight_targets", "assign_programmes", "assign_checkins", "set_fasting_schedule"
    ],
}

# Professional dashboard shortcuts gated by a permission
QUICK_ACTIONS = [
    {"slug": "assign_programmes", "label": "Assign Programme"},
    {"slug": "set_nutrition_targets", "label": "Set Macros"},
    {"slug": "assign_checkins", "label": "Assign Check-in"},
]


def get_category_label(category: str) -> str:
    for c in PERMISSION_CATEGORIES:
        if c["key"] == category:
            return c["label"]
    return category


def get_role_default_permissions(role_type: str) -> list:
    return list(ROLE_DEFAULT_PERMISSIONS.get(role_type, []))


# Generate permission catalog
def get_permission_catalog():
    """
    Returns the seedable permission catalog sorted by sort_order
    Format: [
        {"slug": "view_nutrition", "category": "nutrition", "permission_type": "read",
         "display_name": "...", "description": "...", "is_exclusive": False,
         "is_enabled": True, "sort_order": 10},
        ...
    ]
    """
    catalog = []

    for slug, (category, display_name, description, sort_order) in SHARED_PERMISSIONS.items():
        catalog.append({
            "slug": slug,
            "category": category,
            "permission_type": "read",
            "display_name": display_name,
            "description": description,
            "is_exclusive": False,
            "is_enabled": True,
            "sort_order": sort_order
        })

    for slug, (category, display_name, description, sort_order) in EXCLUSIVE_PERMISSIONS.items():
        catalog.append({
            "slug": slug,
            "category": category,
            "permission_type": "write",
            "display_name": display_name,
            "description": description,
            "is_exclusive": True,
            "is_enabled": True,
            "sort_order": sort_order
        })

    return sorted(catalog, key=lambda p: p["sort_order"])


# Export the catalog for use in seed scripts
PERMISSION_CATALOG = get_permission_catalog()
