from pydantic import BaseModel


class ListCandidatesQuery(BaseModel):
    pass  # Public listing, vote counts depend on the published flag


class GetConfigQuery(BaseModel):
    pass


class GetCandidateQuery(BaseModel):
    candidate_id: str


class ListRequestsQuery(BaseModel):
    pass


class ListVotersQuery(BaseModel):
    pass


class ListAllCandidatesQuery(BaseModel):
    pass


class ListAdminsQuery(BaseModel):
    pass
