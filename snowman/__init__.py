"""
Snowman - an interactive fiction runtime for Twine 2 stories

Turns a published Twine story (named, tagged passages) into a navigable story
with branching links, persisted progress and checkpoint-based save points.

Modules:
- links: Rewrite [[link]] markup into activation elements
- templates: Expand passage templates against the story context
- passage: Passage records and the passage compiler
- story: Story aggregate (passages, state bag, navigation state)
- navigation: Navigation and checkpoint engine
- persistence: Save records and key-value stores
- history: Browser history adapter
- parse_story: Load a published Twine HTML document into a Story
"""

__version__ = "1.0.0"
