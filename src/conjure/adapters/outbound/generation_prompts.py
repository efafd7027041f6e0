"""正規化モデルとコード生成モデルへの固定指示。"""

from __future__ import annotations

NORMALIZER_INSTRUCTIONS = (
    "Compress the user's request into 1-2 lowercase English words naming its core intent."
    " The words are used as a cache key, so similar requests must map to the same words."
    " Reply with the words only: no punctuation, quotes or explanation."
    ' Example: "give me something that creates rain" -> rain.'
    ' Example: "a big bouncy red ball please" -> bouncy ball.'
)

BOUNCY_BALL_EXAMPLE = """\
radius = 1.2
ball = physics.Body(2.0, physics.moment_for_circle(2.0, 0, radius))
ball.position = (spawn_x, spawn_y)
shape = physics.Circle(ball, radius)
shape.elasticity = 0.95
shape.friction = 0.4
world.add(ball, shape)
register({"body": ball, "kind": "circle", "radius": radius, "color": "#ea4335"})
"""

RAIN_CLOUD_EXAMPLE = """\
cloud = physics.Body(body_type=physics.Body.KINEMATIC)
cloud.position = (spawn_x, spawn_y)
cloud_shape = physics.Poly.create_box(cloud, (6.0, 1.5))
world.add(cloud, cloud_shape)
register({"body": cloud, "kind": "rect", "half_width": 3.0, "half_height": 0.75})
state = {"frame": 0}

def update():
    state["frame"] += 1
    if state["frame"] % 4:
        return
    drop = physics.Body(0.05, physics.moment_for_circle(0.05, 0, 0.12))
    drop.position = (cloud.position.x + random.uniform(-2.8, 2.8), cloud.position.y + 1.0)
    drop.velocity = (0, 9)
    world.add(drop, physics.Circle(drop, 0.12))
    register({"body": drop, "kind": "circle", "radius": 0.12, "color": "#8ab4f8"})

return {"update": update}
"""

TURRET_EXAMPLE = """\
base = physics.Body(5.0, physics.moment_for_box(5.0, (2.0, 1.0)))
base.position = (spawn_x, spawn_y)
world.add(base, physics.Poly.create_box(base, (2.0, 1.0)))
register({"body": base, "kind": "rect", "half_width": 1.0, "half_height": 0.5, "color": "#34a853"})
state = {"cooldown": 0}

def update():
    state["cooldown"] -= 1
    if state["cooldown"] > 0:
        return
    state["cooldown"] = 30
    bullet = physics.Body(0.2, physics.moment_for_circle(0.2, 0, 0.2))
    bullet.position = (base.position.x - 1.4, base.position.y)
    bullet.velocity = (-20 * math.cos(base.angle), -20 * math.sin(base.angle))
    world.add(bullet, physics.Circle(bullet, 0.2))
    register({"body": bullet, "kind": "circle", "radius": 0.2, "color": "#fbbc04"})

return {"update": update}
"""

GENERATOR_EXAMPLES: tuple[str, ...] = (
    BOUNCY_BALL_EXAMPLE,
    RAIN_CLOUD_EXAMPLE,
    TURRET_EXAMPLE,
)

GENERATOR_INSTRUCTIONS = (
    "You write Python code that creates an interactive object in a 2D pymunk simulation."
    " Your code is the BODY of a function; do not define the function yourself."
    " Only these names are available:\n"
    "- physics: the pymunk module (Body, Circle, Poly, Segment, moment_for_circle, ...)\n"
    "- world: the pymunk.Space; add bodies and shapes with world.add(body, shape)\n"
    "- register(obj): makes a body visible; obj is a dict with 'body', 'kind'"
    " ('circle' with 'radius', 'rect' with 'half_width'/'half_height',"
    " or 'polygon' with 'vertices'), and 'color' (hex string)\n"
    "- W, H: world width and height in simulation units (+y points down)\n"
    "- spawn_x, spawn_y: where the object should appear\n"
    "- math and random modules; import statements are not allowed\n"
    "Optionally `return {\"update\": update}` where update() takes no arguments and"
    " runs once per frame at 60 Hz. Bodies registered inside update are short-lived"
    " particles: they start without gravity and only the newest 200 are kept.\n"
    'Reply with a JSON object only: {"code": "<python code>"}. No Markdown fences.\n'
    "Example 1 (a bouncy ball):\n"
    f"{BOUNCY_BALL_EXAMPLE}\n"
    "Example 2 (a rain cloud):\n"
    f"{RAIN_CLOUD_EXAMPLE}\n"
    "Example 3 (a turret that fires bullets):\n"
    f"{TURRET_EXAMPLE}"
)
