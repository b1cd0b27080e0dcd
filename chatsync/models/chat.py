from typing import List, Optional, Tuple, TypedDict


class ParticipantInfo(TypedDict, total=False):
    id: str
    name: str
    image: Optional[str]


class ChatDocument(TypedDict, total=False):
    _id: str
    # user ids allowed to see the chat
    participants: List[str]
    # one entry per participant, kept in sync by the participants' own clients
    participantsInfo: List[ParticipantInfo]
    lastMessage: str
    # epoch milliseconds
    updatedAt: int


# ordered by updatedAt desc, as delivered by the store
ChatSnapshot = Tuple[ChatDocument, ...]
