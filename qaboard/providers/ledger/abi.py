"""ABI subset of the deployed Q&A contract (events, mutating calls, views)."""


def _event(name, inputs):
    return {"anonymous": False, "inputs": inputs, "name": name, "type": "event"}


def _param(name, type_, indexed=None):
    param = {"internalType": type_, "name": name, "type": type_}
    if indexed is not None:
        param["indexed"] = indexed
    return param


def _function(name, inputs, outputs=None, mutability="nonpayable"):
    return {
        "inputs": inputs,
        "name": name,
        "outputs": outputs or [],
        "stateMutability": mutability,
        "type": "function",
    }


QA_CONTRACT_ABI = [
    _event(
        "QuestionAsked",
        [
            _param("author", "address", True),
            _param("questionId", "string", False),
            _param("category", "string", False),
            _param("timestamp", "uint256", False),
        ],
    ),
    _event(
        "AnswerSubmitted",
        [
            _param("author", "address", True),
            _param("answerId", "string", False),
            _param("questionId", "string", False),
            _param("timestamp", "uint256", False),
        ],
    ),
    _event(
        "BestAnswerSelected",
        [
            _param("questionAuthor", "address", True),
            _param("answerAuthor", "address", True),
            _param("answerId", "string", False),
            _param("questionId", "string", False),
            _param("timestamp", "uint256", False),
        ],
    ),
    _function("askQuestion", [_param("questionId", "string"), _param("category", "string")]),
    _function("submitAnswer", [_param("answerId", "string"), _param("questionId", "string")]),
    _function("selectBestAnswer", [_param("answerId", "string"), _param("questionId", "string")]),
    _function(
        "getUserPoints",
        [_param("user", "address")],
        [_param("", "uint256")],
        "view",
    ),
    _function(
        "getUserStats",
        [_param("user", "address")],
        [
            _param("totalPoints", "uint256"),
            _param("questionsAsked", "uint256"),
            _param("answersGiven", "uint256"),
            _param("bestAnswers", "uint256"),
        ],
        "view",
    ),
    _function(
        "getQuestion",
        [_param("questionId", "string")],
        [
            _param("author", "address"),
            _param("category", "string"),
            _param("timestamp", "uint256"),
            _param("exists", "bool"),
        ],
        "view",
    ),
    _function(
        "getAnswer",
        [_param("answerId", "string")],
        [
            _param("author", "address"),
            _param("questionId", "string"),
            _param("timestamp", "uint256"),
            _param("isBestAnswer", "bool"),
            _param("exists", "bool"),
        ],
        "view",
    ),
]

EVENT_NAMES = ("QuestionAsked", "AnswerSubmitted", "BestAnswerSelected")
