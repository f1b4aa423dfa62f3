"""
Particle simulation module.

Generates synthetic detections: particles that spawn at the edges of a
rectangular domain and drift across it with a near-constant velocity.
Detections can be dropped at random to mimic missed detections.  Used to
produce inputs with known ground truth for the tracker.
"""

import numpy as np

# ---------------------------------------------------------------------------
# Default constants
# ---------------------------------------------------------------------------
DEFAULT_DOMAIN_WIDTH = 0.1
DEFAULT_DOMAIN_HEIGHT = 0.1
DEFAULT_SPEED = 0.002
DEFAULT_JITTER = 5e-5
DEFAULT_MIN_CENTER_DIST = 0.008
DEFAULT_MAX_PARTICLES = 20


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------
def _is_too_close(pos, other_positions, min_dist):
    """Return True if *pos* is within *min_dist* of any position in the list."""
    if len(other_positions) == 0:
        return False
    d = np.hypot(*(np.asarray(other_positions) - pos).T)
    return bool(np.any(d < min_dist))


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def create_particle(
    rng,
    pid,
    domain_width=DEFAULT_DOMAIN_WIDTH,
    domain_height=DEFAULT_DOMAIN_HEIGHT,
    speed=DEFAULT_SPEED,
    min_center_dist=DEFAULT_MIN_CENTER_DIST,
    existing_positions=(),
):
    """Spawn a particle on a random edge, heading into the domain.

    Returns
    -------
    dict or None
        Particle with keys ``pid``, ``position``, ``velocity``; None if no
        spawn site far enough from *existing_positions* was found.
    """
    for _ in range(100):
        edge = rng.integers(4)
        if edge == 0:
            position = np.array([rng.uniform(0, domain_width), 0.0])
            heading = rng.uniform(np.pi / 4, 3 * np.pi / 4)
        elif edge == 1:
            position = np.array([rng.uniform(0, domain_width), domain_height])
            heading = rng.uniform(-3 * np.pi / 4, -np.pi / 4)
        elif edge == 2:
            position = np.array([0.0, rng.uniform(0, domain_height)])
            heading = rng.uniform(-np.pi / 4, np.pi / 4)
        else:
            position = np.array([domain_width, rng.uniform(0, domain_height)])
            heading = rng.uniform(3 * np.pi / 4, 5 * np.pi / 4)
        if not _is_too_close(position, existing_positions, min_center_dist):
            velocity = speed * np.array([np.cos(heading), np.sin(heading)])
            return {"pid": pid, "position": position, "velocity": velocity}
    return None


def move_particle(particle, rng, jitter=DEFAULT_JITTER):
    """Advance *particle* by one frame in-place."""
    particle["position"] = particle["position"] + particle["velocity"] + rng.normal(0.0, jitter, 2)


def is_off_screen(particle, domain_width=DEFAULT_DOMAIN_WIDTH, domain_height=DEFAULT_DOMAIN_HEIGHT):
    """Return True if the particle's center is outside the domain."""
    x, y = particle["position"]
    return x < 0 or x > domain_width or y < 0 or y > domain_height


def simulate_particles(
    n_frames,
    max_particles=DEFAULT_MAX_PARTICLES,
    spawn_every=2,
    dropout=0.0,
    domain_width=DEFAULT_DOMAIN_WIDTH,
    domain_height=DEFAULT_DOMAIN_HEIGHT,
    speed=DEFAULT_SPEED,
    jitter=DEFAULT_JITTER,
    min_center_dist=DEFAULT_MIN_CENTER_DIST,
    seed=None,
):
    """Run the simulation and return per-frame detections.

    Parameters
    ----------
    n_frames : int
        Number of frames to generate (indices ``0 .. n_frames - 1``).
    max_particles : int
        Total number of particles spawned over the simulation.
    spawn_every : int
        A new particle is spawned every *spawn_every* frames.
    dropout : float
        Probability that a particle is not detected in a given frame.
    domain_width, domain_height : float
        Domain size in meters.
    speed : float
        Displacement per frame in meters.
    jitter : float
        Standard deviation of the per-frame random walk component.
    min_center_dist : float
        Minimum spacing enforced when spawning.
    seed : int or None
        Seed for ``numpy.random.default_rng``.

    Returns
    -------
    frames : dict[int, list[tuple[float, float]]]
        Detected positions per frame.
    truth : dict[int, list[int]]
        Ground-truth particle id of each detection, parallel to *frames*.
    """
    rng = np.random.default_rng(seed)
    particles = []
    created = 0
    frames, truth = {}, {}

    for frame in range(n_frames):
        if created < max_particles and frame % spawn_every == 0:
            new_p = create_particle(
                rng, created,
                domain_width=domain_width,
                domain_height=domain_height,
                speed=speed,
                min_center_dist=min_center_dist,
                existing_positions=[p["position"] for p in particles],
            )
            if new_p is not None:
                particles.append(new_p)
                created += 1

        for particle in particles[:]:
            move_particle(particle, rng, jitter)
            if is_off_screen(particle, domain_width, domain_height):
                particles.remove(particle)

        seen = [p for p in particles if rng.uniform() >= dropout]
        frames[frame] = [tuple(p["position"]) for p in seen]
        truth[frame] = [p["pid"] for p in seen]

    return frames, truth
