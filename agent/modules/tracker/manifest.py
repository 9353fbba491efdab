"""Tracker module manifest — tool definitions."""

from shared.schemas.tools import ModuleManifest, ToolDefinition, ToolParameter

MANIFEST = ModuleManifest(
    module_name="tracker",
    description=(
        "Personal location history: log GPS samples with optional place labels, "
        "report frequently visited places, predict where the user goes next, "
        "and send emergency SOS alerts to saved contacts."
    ),
    tools=[
        ToolDefinition(
            name="tracker.log_location",
            description="Record the user's current GPS position, optionally tagged with a place label.",
            parameters=[
                ToolParameter(name="latitude", type="number", description="Latitude in degrees"),
                ToolParameter(name="longitude", type="number", description="Longitude in degrees"),
                ToolParameter(
                    name="label",
                    type="string",
                    description='Place name, e.g. "home", "office". Matching ignores case and surrounding spaces.',
                    required=False,
                ),
                ToolParameter(
                    name="accuracy_m",
                    type="number",
                    description="Reported GPS accuracy in meters",
                    required=False,
                ),
                ToolParameter(
                    name="source",
                    type="string",
                    description='"manual" for an explicit log action, "tracking" for passive tracking',
                    required=False,
                    enum=["manual", "tracking"],
                ),
            ],
        ),
        ToolDefinition(
            name="tracker.list_samples",
            description="List the user's most recent location samples, oldest first.",
            parameters=[
                ToolParameter(
                    name="limit",
                    type="integer",
                    description="Maximum number of samples (default 100)",
                    required=False,
                ),
            ],
        ),
        ToolDefinition(
            name="tracker.delete_sample",
            description="Delete one of the user's location samples.",
            parameters=[
                ToolParameter(name="sample_id", type="string", description="UUID of the sample"),
            ],
        ),
        ToolDefinition(
            name="tracker.frequent_places",
            description=(
                "Group the user's history into places, most visited first. "
                "'label' groups by place label, 'proximity' groups unlabeled fixes within ~100 m."
            ),
            parameters=[
                ToolParameter(
                    name="mode",
                    type="string",
                    description='Clustering mode (default "label")',
                    required=False,
                    enum=["label", "proximity"],
                ),
                ToolParameter(
                    name="limit",
                    type="integer",
                    description="Maximum number of places (default 10)",
                    required=False,
                ),
            ],
        ),
        ToolDefinition(
            name="tracker.daily_pattern",
            description=(
                "Show how the user's logged samples spread over the hours of one weekday: "
                "sample count and average position per hour."
            ),
            parameters=[
                ToolParameter(
                    name="day",
                    type="integer",
                    description="Weekday 0-6 with 0 = Sunday (default today)",
                    required=False,
                ),
            ],
        ),
        ToolDefinition(
            name="tracker.stats",
            description=(
                "Summary counts for the user: logged locations, saved predictions, "
                "emergency contacts and days active."
            ),
            parameters=[],
        ),
        ToolDefinition(
            name="tracker.predict_next_location",
            description=(
                "Predict where the user will be next from their location history. "
                "Needs at least 3 logged samples. Every call is saved to the prediction history."
            ),
            parameters=[
                ToolParameter(
                    name="hour",
                    type="integer",
                    description="Local hour 0-23 (defaults to now)",
                    required=False,
                ),
                ToolParameter(
                    name="day",
                    type="integer",
                    description="Weekday 0-6, 0 = Sunday (defaults to today)",
                    required=False,
                ),
                ToolParameter(
                    name="current_label",
                    type="string",
                    description='The place the user is at right now, e.g. "home"',
                    required=False,
                ),
            ],
        ),
        ToolDefinition(
            name="tracker.list_predictions",
            description="List the user's past predictions, newest first.",
            parameters=[
                ToolParameter(
                    name="limit",
                    type="integer",
                    description="Maximum number of predictions (default 20)",
                    required=False,
                ),
            ],
        ),
        ToolDefinition(
            name="tracker.delete_prediction",
            description="Delete one of the user's saved predictions.",
            parameters=[
                ToolParameter(name="prediction_id", type="string", description="UUID of the prediction"),
            ],
        ),
        ToolDefinition(
            name="tracker.add_contact",
            description="Save an emergency contact. Only contacts with an email receive SOS alerts.",
            parameters=[
                ToolParameter(name="name", type="string", description="Contact name"),
                ToolParameter(name="phone", type="string", description="Phone number"),
                ToolParameter(name="email", type="string", description="Email address", required=False),
                ToolParameter(
                    name="relationship",
                    type="string",
                    description='e.g. "sister", "friend"',
                    required=False,
                ),
            ],
        ),
        ToolDefinition(
            name="tracker.list_contacts",
            description="List the user's emergency contacts.",
            parameters=[],
        ),
        ToolDefinition(
            name="tracker.delete_contact",
            description="Delete one of the user's emergency contacts.",
            parameters=[
                ToolParameter(name="contact_id", type="string", description="UUID of the contact"),
            ],
        ),
        ToolDefinition(
            name="tracker.send_sos_alert",
            description=(
                "Send an emergency email to the user's contacts with their last known location. "
                "Uses the saved emergency contacts unless contacts are given."
            ),
            parameters=[
                ToolParameter(
                    name="location",
                    type="string",
                    description="Free-text description of where the user is",
                    required=False,
                ),
                ToolParameter(
                    name="coordinates",
                    type="object",
                    description='{"lat": ..., "lng": ...}; defaults to the latest logged sample',
                    required=False,
                ),
                ToolParameter(
                    name="contacts",
                    type="array",
                    description='[{"name", "email", "phone"}]; defaults to saved contacts',
                    required=False,
                ),
            ],
        ),
    ],
)
