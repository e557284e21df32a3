import io
import unittest
from unittest.mock import patch, MagicMock

import pandas as pd
import requests

from period_engine.data_loader import DataLoader


class TestDataLoader(unittest.TestCase):

    def setUp(self):
        self.base_config = {
            "setup": {
                "title": "Maintenance KPI",
                "time_filter": "select-period",
                "year": 2024,
                "period": 3,
            },
            "metrics": {"totalTickets": {"aggf": "count"}},
        }

    def test_csv_data_takes_precedence(self):
        """
        Tests that if CSV data is provided, it's used even if data_url exists.
        """
        csv_stream = io.StringIO("Date,status\n2024-03-05,open\n2024-03-03,closed\n")
        config = dict(self.base_config, setup=dict(self.base_config["setup"], data_url="http://example.com/e.csv"))

        with patch('period_engine.data_loader.requests.get') as mock_get:
            loader = DataLoader(cfg=config, csv_data=csv_stream)

            mock_get.assert_not_called()
            self.assertEqual(len(loader.daily_df), 2)
            # Sorted by date
            self.assertEqual(loader.daily_df['status'].tolist(), ['closed', 'open'])
            self.assertTrue(pd.api.types.is_datetime64_any_dtype(loader.daily_df['Date']))

    def test_thousands_separator(self):
        csv_stream = io.StringIO('Date,cost_avoidance\n2024-03-05,"1,250"\n')
        loader = DataLoader(cfg=self.base_config, csv_data=csv_stream)
        self.assertEqual(loader.daily_df['cost_avoidance'].iloc[0], 1250)

    @patch('period_engine.data_loader.requests.get')
    def test_data_url_is_used_when_no_csv(self, mock_get):
        mock_response = MagicMock()
        mock_response.content = b"Date,status\n2024-03-05,open\n"
        mock_get.return_value = mock_response

        config = dict(self.base_config, setup=dict(self.base_config["setup"], data_url="https://example.com/e.csv"))
        loader = DataLoader(cfg=config)

        mock_get.assert_called_once_with("https://example.com/e.csv", allow_redirects=True)
        mock_response.raise_for_status.assert_called_once()
        self.assertEqual(loader.daily_df['status'].iloc[0], 'open')

    @patch('period_engine.data_loader.requests.get')
    def test_failed_download_raises_connection_error(self, mock_get):
        mock_get.side_effect = requests.exceptions.ConnectionError("refused")
        config = dict(self.base_config, setup=dict(self.base_config["setup"], data_url="https://example.com/e.csv"))

        with self.assertRaises(ConnectionError):
            DataLoader(cfg=config)

    @patch('period_engine.data_loader.requests.get')
    def test_http_error_raises_connection_error(self, mock_get):
        mock_response = MagicMock()
        mock_response.raise_for_status.side_effect = requests.exceptions.HTTPError("404")
        mock_get.return_value = mock_response
        config = dict(self.base_config, setup=dict(self.base_config["setup"], data_url="https://example.com/e.csv"))

        with self.assertRaises(ConnectionError):
            DataLoader(cfg=config)

    def test_missing_local_file(self):
        config = dict(self.base_config, setup=dict(self.base_config["setup"], data_url="/no/such/events.csv"))
        with self.assertRaises(FileNotFoundError):
            DataLoader(cfg=config)

    def test_no_data_source(self):
        with self.assertRaises(ValueError) as context:
            DataLoader(cfg=self.base_config)
        self.assertIn("No data source provided", str(context.exception))

    def test_missing_date_column(self):
        csv_stream = io.StringIO("When,status\n2024-03-05,open\n")
        with self.assertRaises(ValueError) as context:
            DataLoader(cfg=self.base_config, csv_data=csv_stream)
        self.assertIn("'Date'", str(context.exception))

    def test_custom_date_column(self):
        csv_stream = io.StringIO("created_at,status\n2024-03-05,open\n")
        config = dict(self.base_config, setup=dict(self.base_config["setup"], date_column="created_at"))
        loader = DataLoader(cfg=config, csv_data=csv_stream)
        self.assertEqual(loader.date_column, "created_at")
        self.assertEqual(loader.daily_df['created_at'].iloc[0], pd.Timestamp("2024-03-05"))

    def test_unparseable_dates(self):
        csv_stream = io.StringIO("Date,status\nnot-a-date,open\n")
        with self.assertRaises(ValueError):
            DataLoader(cfg=self.base_config, csv_data=csv_stream)


if __name__ == '__main__':
    unittest.main()
