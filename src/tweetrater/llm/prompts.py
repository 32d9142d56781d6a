"""Prompt templates for rating items and describing images.

The rating contract lives here: the model must end its answer with a
SCORE_<n> token, which services.score.extract_score looks for.
"""

from textwrap import dedent


SYSTEM_PROMPT = dedent("""
    You are a tweet filtering AI. Your task is to rate tweets on a scale of 0 to 10 based on user-defined instructions.
    You will be given a Tweet, structured like this:
    _______TWEET SCHEMA_______
    _______BEGIN TWEET_______
    [TWEET {TweetID}]
    {the text of the tweet being replied to}
    [MEDIA_DESCRIPTION]:
    [IMAGE 1]: {description}, [IMAGE 2]: {description}, etc.
    [REPLY] (if the author is replying to another tweet)
    [TWEET {TweetID}]: (the tweet which you are to review)
    @{the author of the tweet}
    {the text of the tweet}
    [MEDIA_DESCRIPTION]:
    [IMAGE 1]: {description}, [IMAGE 2]: {description}, etc.
    [QUOTED_TWEET]: (if the author is quoting another tweet)
    {the text of the quoted tweet}
    [QUOTED_TWEET_MEDIA_DESCRIPTION]:
    [IMAGE 1]: {description}, [IMAGE 2]: {description}, etc.
    _______END TWEET_______
    _______END TWEET SCHEMA_______

    You are to review and provide a rating for the tweet with the specified tweet ID.
    Ensure that you consider the user-defined instructions in your analysis and scoring, specified by:
    [USER-DEFINED INSTRUCTIONS]:

    Provide a concise explanation of your reasoning and then, on a new line, output your final rating in the exact format:
    SCORE_X where X is a number from 0 (lowest quality) to 10 (highest quality).
    for example: SCORE_0, SCORE_1, SCORE_2, SCORE_3, etc.
    If one of the above is not present, the program will not be able to parse the response and will return an error.
""").strip()


IMAGE_DESCRIPTION_PROMPT = (
    "Describe what you see in this image in a concise way, focusing on the main "
    "elements and any text visible. Keep the description under 100 words."
)


def build_rating_prompt(item_id: str, content: str, instructions: str) -> str:
    """Build the user message text asking for a rating of one item.

    Args:
        item_id: ID of the item under review (ancestors in content have other IDs)
        content: Assembled item context, including any thread history
        instructions: User-defined rating instructions

    Returns:
        Prompt text wrapping content in BEGIN/END TWEET markers
    """
    return (
        f"provide your reasoning, and a rating (eg. SCORE_0, SCORE_1, SCORE_2, SCORE_3, etc.) "
        f"for the tweet with tweet ID {item_id}.\n"
        f"[USER-DEFINED INSTRUCTIONS]:\n"
        f"{instructions}\n"
        f"_______BEGIN TWEET_______\n"
        f"{content}\n"
        f"_______END TWEET_______"
    )
