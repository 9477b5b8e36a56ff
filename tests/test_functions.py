"""
Tests for the function invokers and the server-side function handlers
"""
import re
import pytest
import requests
from unittest.mock import Mock, patch
from services.data_access import DataAccess
from services.errors import FunctionInvocationError
from services.functions import HttpFunctionInvoker, LocalFunctionInvoker, build_function_invoker
from services.remote_functions import RemoteFunctions, is_vesuviano, render_offer_pdf


def make_response(status_code=200, json_data=None, text=''):
    response = Mock()
    response.status_code = status_code
    response.ok = status_code < 400
    response.text = text
    if json_data is None:
        response.json.side_effect = ValueError('no json')
    else:
        response.json.return_value = json_data
    return response


@pytest.fixture
def factory(session_factory, change_feed):
    """Fresh DataAccess per call, like the application's factory"""
    return lambda: DataAccess(session_factory(), change_feed)


@pytest.mark.unit
class TestLocalFunctionInvoker:
    """Tests for in-process dispatch"""

    def test_dispatch_and_record(self):
        """Test handlers receive the body and calls are recorded"""
        invoker = LocalFunctionInvoker({'echo': lambda body: {'success': True, 'got': body['x']}})
        assert invoker.invoke('echo', {'x': 1}) == {'success': True, 'got': 1}
        assert invoker.calls == [('echo', {'x': 1})]
        assert invoker.calls_to('echo') == [{'x': 1}]

    def test_unknown_function(self):
        """Test an unregistered name fails"""
        with pytest.raises(FunctionInvocationError):
            LocalFunctionInvoker().invoke('missing')

    def test_reported_failure(self):
        """Test success False becomes an error carrying the message"""
        invoker = LocalFunctionInvoker({'f': lambda body: {'success': False, 'message': 'nope'}})
        with pytest.raises(FunctionInvocationError) as exc_info:
            invoker.invoke('f')
        assert 'nope' in exc_info.value.message

    def test_handler_exception(self):
        """Test exceptions raised by a handler are wrapped"""
        def boom(body):
            raise RuntimeError('db down')
        invoker = LocalFunctionInvoker({'f': boom})
        with pytest.raises(FunctionInvocationError):
            invoker.invoke('f')

    def test_none_result(self):
        """Test handlers returning nothing give an empty dict"""
        assert LocalFunctionInvoker({'f': lambda body: None}).invoke('f') == {}


@pytest.mark.unit
class TestHttpFunctionInvoker:
    """Tests for HTTP dispatch"""

    def test_posts_json_with_bearer_token(self):
        """Test the request shape"""
        session = Mock()
        session.post.return_value = make_response(json_data={'success': True, 'code': 'OFF-1'})
        invoker = HttpFunctionInvoker('https://functions.example.com/v1/', api_key='k', timeout=5, session=session)

        assert invoker.invoke('generate-offer-code', {'prefix': 'OFF'}) == {'success': True, 'code': 'OFF-1'}

        args, kwargs = session.post.call_args
        assert args[0] == 'https://functions.example.com/v1/generate-offer-code'
        assert kwargs['json'] == {'prefix': 'OFF'}
        assert kwargs['headers']['Authorization'] == 'Bearer k'
        assert kwargs['timeout'] == 5

    def test_http_error_uses_error_body(self):
        """Test non-2xx responses raise with the reported error"""
        session = Mock()
        session.post.return_value = make_response(500, json_data={'error': 'quota exceeded'})
        invoker = HttpFunctionInvoker('https://functions.example.com', session=session)
        with pytest.raises(FunctionInvocationError) as exc_info:
            invoker.invoke('send-email')
        assert 'quota exceeded' in exc_info.value.message

    def test_http_error_without_json(self):
        """Test the response text is used when there is no JSON"""
        session = Mock()
        session.post.return_value = make_response(502, text='Bad gateway')
        invoker = HttpFunctionInvoker('https://functions.example.com', session=session)
        with pytest.raises(FunctionInvocationError) as exc_info:
            invoker.invoke('send-email')
        assert 'Bad gateway' in exc_info.value.message

    def test_network_error(self):
        """Test connection failures raise"""
        session = Mock()
        session.post.side_effect = requests.ConnectionError('refused')
        invoker = HttpFunctionInvoker('https://functions.example.com', session=session)
        with pytest.raises(FunctionInvocationError):
            invoker.invoke('send-email')

    def test_success_false_body(self):
        """Test a 200 reporting failure raises"""
        session = Mock()
        session.post.return_value = make_response(json_data={'success': False, 'message': 'bad lead'})
        invoker = HttpFunctionInvoker('https://functions.example.com', session=session)
        with pytest.raises(FunctionInvocationError):
            invoker.invoke('sync-vesuviano-lead')

    def test_base_url_required(self):
        """Test the endpoint must be configured"""
        with pytest.raises(ValueError):
            HttpFunctionInvoker('')


@pytest.mark.unit
class TestBuildFunctionInvoker:
    """Tests for transport selection"""

    def test_local_mode_registers_every_function(self, factory, storage):
        """Test local mode dispatches to the built-in handlers"""
        invoker = build_function_invoker({'FUNCTIONS_MODE': 'local'}, factory, storage)
        assert isinstance(invoker, LocalFunctionInvoker)
        assert set(invoker.handlers) == {
            'send-email', 'send-partner-emails', 'send-customer-emails', 'sync-vesuviano-lead',
            'sync-all-vesuviano-leads', 'generate-offer-code', 'generate-offer-pdf',
        }

    def test_http_mode(self):
        """Test http mode uses the configured endpoint"""
        invoker = build_function_invoker({'FUNCTIONS_MODE': 'HTTP', 'FUNCTIONS_BASE_URL': 'https://f.example.com'})
        assert isinstance(invoker, HttpFunctionInvoker)
        assert invoker.base_url == 'https://f.example.com'


@pytest.mark.unit
class TestEmailFunctions:
    """Tests for the email handlers"""

    def test_send_email_without_smtp(self):
        """Test an unconfigured SMTP reports the email as not sent"""
        functions = RemoteFunctions({})
        assert functions.send_email({'to': 'a@b.it', 'subject': 'Hi', 'message': 'x'}) == {
            'success': True, 'sent': False,
        }

    def test_send_email_requires_recipient(self):
        """Test a missing recipient is a reported failure"""
        assert RemoteFunctions({}).send_email({'subject': 'Hi'})['success'] is False

    def test_send_email_over_smtp(self):
        """Test delivery through the configured server"""
        config = {'SMTP_HOST': 'smtp.example.com', 'SMTP_PORT': 2525, 'SMTP_USER': 'u', 'SMTP_PASSWORD': 'p'}
        with patch('services.remote_functions.smtplib.SMTP') as smtp:
            server = smtp.return_value.__enter__.return_value
            result = RemoteFunctions(config).send_email({'to': 'a@b.it', 'subject': 'Hi', 'message': 'x'})

        assert result == {'success': True, 'sent': True}
        smtp.assert_called_once_with('smtp.example.com', 2525)
        server.login.assert_called_once_with('u', 'p')
        assert server.send_message.call_args[0][0]['To'] == 'a@b.it'

    def test_partner_emails_filter_recipients(self, factory, data_access):
        """Test only matching partners with an email are counted"""
        data_access.insert('partners', [
            {'company_name': 'A', 'partner_type': 'rivenditore', 'email': 'a@a.it'},
            {'company_name': 'B', 'partner_type': 'rivenditore'},
            {'company_name': 'C', 'partner_type': 'importatore', 'email': 'c@c.it'},
        ])
        functions = RemoteFunctions({}, factory)
        result = functions.send_partner_emails({
            'partner_type': 'rivenditore', 'region': 'all', 'acquisition_status': 'all',
            'subject': 'Listino', 'message': 'Testo',
        })
        assert result['recipients'] == 2
        assert result['skipped'] == 1
        assert result['emailsSent'] == 0

    def test_customer_emails_selected_ids(self, factory, data_access, customer):
        """Test customer emails can target given ids"""
        data_access.insert_one('customers', {'name': 'Altro', 'email': 'altro@example.com'})
        result = RemoteFunctions({}, factory).send_customer_emails({
            'subject': 'Novità', 'message': 'Testo', 'customer_ids': [customer['id']],
        })
        assert result['recipients'] == 1


@pytest.mark.unit
class TestConfiguratorSync:
    """Tests for the Vesuviano configurator sync"""

    CONFIG = {'CONFIGURATOR_API_URL': 'https://configurator.example.com/api/leads', 'CONFIGURATOR_API_KEY': 'secret'}

    def test_sync_stores_link(self, factory, data_access):
        """Test the configurator link is saved on the lead"""
        lead = data_access.insert_one('leads', {'company_name': 'ACME', 'email': 'info@acme.it',
                                                'pipeline': 'Vesuviano'})
        http = Mock()
        http.post.return_value.json.return_value = {'configurator_link': 'https://configurator.example.com/c/1'}

        result = RemoteFunctions(self.CONFIG, factory, http=http).sync_vesuviano_lead({'leadId': lead['id']})

        assert result == {'success': True, 'configurator_link': 'https://configurator.example.com/c/1'}
        args, kwargs = http.post.call_args
        assert args[0] == self.CONFIG['CONFIGURATOR_API_URL']
        assert kwargs['headers']['x-api-key'] == 'secret'
        assert kwargs['json']['email'] == 'info@acme.it'
        assert kwargs['json']['pipeline_id'] == lead['id']
        stored = data_access.get('leads', lead['id'])
        assert stored['external_configurator_link'] == 'https://configurator.example.com/c/1'

    def test_sync_without_link_succeeds(self, factory, data_access):
        """Test a response without a link is a success that leaves the lead untouched"""
        lead = data_access.insert_one('leads', {'company_name': 'ACME', 'pipeline': 'vesuviano'})
        http = Mock()
        http.post.return_value.json.return_value = {'status': 'queued'}

        result = RemoteFunctions(self.CONFIG, factory, http=http).sync_vesuviano_lead({'leadId': lead['id']})

        assert result == {'success': True, 'configurator_link': None}
        assert data_access.get('leads', lead['id'])['external_configurator_link'] is None

    def test_sync_without_configuration(self, factory, data_access):
        """Test a missing API URL is a reported failure"""
        lead = data_access.insert_one('leads', {'company_name': 'ACME', 'pipeline': 'vesuviano'})
        result = RemoteFunctions({}, factory).sync_vesuviano_lead({'leadId': lead['id']})
        assert result['success'] is False

    def test_sync_rejects_other_pipelines(self, factory, data_access):
        """Test only Vesuviano leads are pushed"""
        lead = data_access.insert_one('leads', {'company_name': 'ACME', 'pipeline': 'standard'})
        http = Mock()
        result = RemoteFunctions(self.CONFIG, factory, http=http).sync_vesuviano_lead({'leadId': lead['id']})
        assert result['success'] is False
        http.post.assert_not_called()

    def test_sync_api_error(self, factory, data_access):
        """Test HTTP errors are reported, not raised"""
        lead = data_access.insert_one('leads', {'company_name': 'ACME', 'pipeline': 'vesuviano'})
        http = Mock()
        http.post.return_value.raise_for_status.side_effect = requests.HTTPError('500')
        result = RemoteFunctions(self.CONFIG, factory, http=http).sync_vesuviano_lead({'leadId': lead['id']})
        assert result['success'] is False
        assert data_access.get('leads', lead['id'])['external_configurator_link'] is None

    def test_sync_all_skips_linked_leads(self, factory, data_access):
        """Test only unsynced Vesuviano leads are pushed"""
        data_access.insert('leads', [
            {'company_name': 'A', 'pipeline': 'vesuviano'},
            {'company_name': 'B', 'pipeline': 'vesuviano', 'external_configurator_link': 'https://x.example.com'},
            {'company_name': 'C', 'pipeline': 'standard'},
        ])
        http = Mock()
        http.post.return_value.json.return_value = {'configurator_link': 'https://configurator.example.com/c/2'}

        result = RemoteFunctions(self.CONFIG, factory, http=http).sync_all_vesuviano_leads({})

        assert result['total'] == 1
        assert result['synced'] == 1
        assert http.post.call_count == 1

    def test_is_vesuviano(self):
        """Test the pipeline check ignores case and spaces"""
        assert is_vesuviano(' VESUVIANO ')
        assert not is_vesuviano(None)


@pytest.mark.unit
class TestOfferFunctions:
    """Tests for offer code and PDF generation"""

    def test_offer_code_format(self, factory):
        """Test PREFIX-yyyymmdd-6 hex"""
        result = RemoteFunctions({'OFFER_CODE_PREFIX': 'zap'}, factory).generate_offer_code({})
        assert re.match(r'^ZAP-\d{8}-[0-9A-F]{6}$', result['code'])

    def test_offer_pdf_is_stored(self, factory, data_access, storage, customer):
        """Test the rendered PDF lands in the offers bucket"""
        offer = data_access.insert_one('offers', {'customer_id': customer['id'], 'title': 'Impianto 6kW',
                                                  'amount': 12500, 'notes': 'Tetto a falda'})
        result = RemoteFunctions({}, factory, storage).generate_offer_pdf({'offerId': offer['id']})

        assert result['success'] is True
        assert result['path'].startswith(f"{offer['id']}/")
        assert storage.download('offers', result['path']).startswith(b'%PDF')

    def test_offer_pdf_missing_offer(self, factory, storage):
        """Test a missing offer is a reported failure"""
        result = RemoteFunctions({}, factory, storage).generate_offer_pdf({'offerId': 'missing'})
        assert result['success'] is False

    def test_render_offer_pdf(self):
        """Test rendering without relations"""
        assert render_offer_pdf({'title': 'Offerta <test>', 'amount': None}).startswith(b'%PDF')
