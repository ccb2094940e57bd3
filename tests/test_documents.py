import pytest

from conftest import BASE_HOST, make_response
from sanity_client.clients.errors import InvalidRequestError, RequestError
from sanity_client.clients.sanity import SanityClient
from sanity_client.core.api_types import GetDocumentsResponse

DOC1 = {"_id": "doc1", "_type": "doc", "value": "hello world"}
DOC2 = {"_id": "doc2", "_type": "doc", "value": "hello world"}


def test_no_ids_returns_empty_result_without_request(client, session):
    resp = client.get_documents().execute()

    assert resp == GetDocumentsResponse()
    assert resp.documents == []
    assert session.calls == []


def test_no_ids_build_is_a_validation_error(client):
    with pytest.raises(InvalidRequestError, match="no document ID specified"):
        client.get_documents().build()


def test_overlong_id_is_a_validation_error(client, session):
    with pytest.raises(InvalidRequestError, match="max URL length exceeded"):
        client.get_documents("x" * 1024).execute()
    assert session.calls == []


def test_empty_id_hits_the_dataset_path(client, session):
    session.queue(make_response(404))

    with pytest.raises(RequestError) as exc_info:
        client.get_documents("").execute()

    assert exc_info.value.status_code == 404
    assert session.calls[0].path == "/v1/data/doc/myDataset"


def test_get_two_documents(client, session):
    session.queue(make_response(200, {"documents": [DOC1, DOC2]}))

    resp = client.get_documents("doc1", "doc2").execute()

    call = session.calls[0]
    assert call.method == "GET"
    assert call.path == "/v1/data/doc/myDataset/doc1,doc2"
    assert resp.documents == [DOC1, DOC2]
    assert resp.omitted == []


def test_document_ids_are_escaped_in_path(client, session):
    session.queue(make_response(200, {"documents": []}))

    client.get_documents("a#b", "c?d").execute()

    call = session.calls[0]
    assert call.url == BASE_HOST + "/v1/data/doc/myDataset/a%23b,c%3Fd"
    assert call.params == {}


def test_escaped_ids_count_towards_url_length(client, session):
    prefix_len = len(BASE_HOST + "/v1/data/doc/myDataset/")
    # Fits unescaped, but each "#" grows to three characters once escaped.
    doc_id = "#" * (1024 - prefix_len)

    with pytest.raises(InvalidRequestError, match="max URL length exceeded"):
        client.get_documents(doc_id).execute()
    assert session.calls == []


def test_get_documents_uses_api_host_even_with_cdn(session):
    client = SanityClient("myProject", "myDataset", use_cdn=True, session=session)
    session.queue(make_response(200, {"documents": []}))

    client.get_documents("doc1").tag("preview").execute()

    call = session.calls[0]
    assert call.url.startswith("https://myProject.api.sanity.io/v2021-03-25/data/doc/myDataset/doc1")
    assert call.params == {"tag": "preview"}


def test_get_documents_retries_unavailable(client, session):
    session.queue(make_response(503), make_response(200, {"documents": [DOC1]}))

    resp = client.get_documents("doc1").execute()

    assert resp.documents == [DOC1]
    assert len(session.calls) == 2
