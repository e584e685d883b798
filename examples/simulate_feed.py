"""
Simulated feed session: Cold start -> Answers -> Steady state -> Persistence

Demonstrates end-to-end use of the selection engine:
1. Build a synthetic catalog
2. Run the cold-start batches for a new user who likes Science
3. Fold every answer into the preference tree
4. Switch to steady-state selection once cold start completes
5. Save and reload the profile through the validated JSON boundary
"""

import sys
from pathlib import Path

# Add the repository root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from trivia_feed.config import configure_logging
from trivia_feed.engine import FeedSelector, RandomSource, apply_interaction
from trivia_feed.models import CandidateItem, UserProfile
from trivia_feed.topics import INITIAL_EXPLORATION_TOPICS
from trivia_feed.utils.analytics import interaction_summary, topic_rankings
from trivia_feed.utils.persistence import dump_profile, load_profile


def build_catalog():
    topics = list(INITIAL_EXPLORATION_TOPICS) + ["History", "Sports", "Nature"]
    catalog = []
    for topic in topics:
        for s in range(3):
            for b in range(4):
                catalog.append(
                    CandidateItem(
                        id=f"{topic[:3].lower()}-{s}{b}",
                        topic=topic,
                        subtopic=f"{topic} {s}",
                        branch=f"Angle {b}",
                        difficulty=("easy", "medium", "hard")[b % 3],
                    )
                )
    return catalog


def simulated_answer(item, rng):
    """Science fan: answers Science, skips most of the rest."""
    if item.topic == "Science":
        return {"was_correct": rng.random() < 0.8, "time_spent_ms": 2500}
    if rng.random() < 0.6:
        return {"was_skipped": True, "time_spent_ms": 900}
    return {"was_correct": rng.random() < 0.5, "time_spent_ms": 9000}


def main():
    configure_logging("WARNING")
    rng = RandomSource(seed=42)
    selector = FeedSelector(rng)

    # ==================== Step 1: Catalog ====================
    print("=" * 60)
    print("STEP 1: Building Catalog")
    print("=" * 60)

    catalog = build_catalog()
    print(f"✓ {len(catalog)} items across {len({i.topic for i in catalog})} topics")
    print()

    # ==================== Step 2: Cold Start ====================
    print("=" * 60)
    print("STEP 2: Cold Start Batches")
    print("=" * 60)

    profile = UserProfile()
    while selector.in_cold_start(profile):
        batch = selector.select_batch(catalog, profile, batch_size=10)
        profile = batch.profile
        if not batch.items:
            print("⚠ Catalog exhausted before cold start completed")
            break
        print(f"[{batch.phase.value:>11}] {', '.join(i.topic for i in batch.items)}")

        # ==================== Step 3: Answers ====================
        for item in batch.items:
            profile, _ = apply_interaction(
                profile, item.id, simulated_answer(item, rng), item
            )
    print()
    print(f"✓ Cold start complete after {profile.total_questions_answered} answers")
    for topic, weight in topic_rankings(profile, k=3):
        print(f"  {topic:<15} {weight:.2f}")
    print()

    # ==================== Step 4: Steady State ====================
    print("=" * 60)
    print("STEP 4: Steady-State Batch")
    print("=" * 60)

    batch = selector.select_batch(catalog, profile, batch_size=10)
    profile = batch.profile
    for item in batch.items:
        print(f"  {item.id:<10} {item.topic:<15} {batch.explanations[item.id][-1]}")
    print()

    # ==================== Step 5: Persistence ====================
    print("=" * 60)
    print("STEP 5: Save and Reload")
    print("=" * 60)

    text = dump_profile(profile, indent=2)
    restored = load_profile(text)
    print(f"✓ Serialized profile: {len(text)} bytes")
    print(f"✓ Reloaded profile matches: {restored == profile}")
    summary = interaction_summary(restored)
    print(f"  Answered: {summary['correct'] + summary['incorrect']}, "
          f"skipped: {summary['skipped']}, accuracy: {summary['accuracy']}%")


if __name__ == "__main__":
    main()
