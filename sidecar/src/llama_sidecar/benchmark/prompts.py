"""Prompt set used by the benchmark."""

DEFAULT_PROMPTS = (
    # Reasoning
    "Two friends, Lily and Ray, make statements about who finished a puzzle first. "
    "Lily says: 'I was faster than Ray.' Ray says: 'Lily is lying.' Assume exactly one "
    "of them is telling the truth. Who actually finished the puzzle first?",
    # Summarization
    "Summarize in 1-2 sentences: A local community in Green Valley organized a "
    "neighborhood event to plant 500 trees in the town park. Volunteers of all ages "
    "participated, aiming to improve air quality and beautify the area. According to "
    "the city council, the event was a success and will become an annual tradition.",
    # Creativity
    "Write a very short story (3-5 sentences) about an inventor who creates a device "
    "that transforms ordinary rain into something extraordinary. Make the story "
    "imaginative but coherent, and give it a clear resolution.",
    # Factual accuracy
    "Answer these factual questions directly and separately: 1. What is the capital "
    "city of Italy? 2. In which year did World War I begin? 3. Name one gas that makes "
    "up most of Earth's atmosphere.",
    # Mixed
    "A local bakery and a local gym are debating how to promote healthier lifestyles. "
    "The bakery claims offering whole-grain breads and low-sugar pastries is "
    "sufficient, while the gym argues that regular exercise classes matter more. "
    "Summarize each side's main point in one sentence each, then propose a creative, "
    "two-sentence compromise.",
)
