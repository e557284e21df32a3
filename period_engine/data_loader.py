import io
import logging

import pandas as pd
import requests

from period_engine.constants import DEFAULT_DATE_COLUMN

logger = logging.getLogger(__name__)


class DataLoader:

    def __init__(self, cfg: dict, csv_data: any = None):

        """
        Initializes the DataLoader that loads the event data based on the fallback logic:
        1. Use `csv_data` if provided.
        2. If not, use `data_url` (an http(s) URL or a local path) from the `setup` section of `cfg`.
        3. If neither is available, raise an error.

        Every row of the CSV is one event (ticket, work order, ...) and must carry a date column,
        `Date` unless `setup.date_column` says otherwise.

        Args:
            cfg (dict): The dashboard YAML configuration.
            csv_data (any, optional): A file stream or path for a CSV file. Defaults to None.
        """

        self.cfg = cfg
        setup = self.cfg.get('setup') or {}
        self.date_column = setup.get('date_column', DEFAULT_DATE_COLUMN)

        if csv_data is not None:
            logger.info("CSV data provided. Using CSV as the primary data source.")
            raw_df = pd.read_csv(csv_data, thousands=',')
        else:
            data_url = setup.get('data_url')
            if not data_url:
                raise ValueError(
                    "No data source provided. Please provide either a CSV file or a 'data_url' in your YAML config.")
            logger.info(f"No CSV data provided. Loading event data from {data_url}.")
            raw_df = _load_csv_from_url_or_path(data_url)

        self.daily_df = self._parse_dates(raw_df)
        logger.info(f"Successfully loaded event data. Resulting DataFrame has {len(self.daily_df)} rows.")

    def _parse_dates(self, df: pd.DataFrame) -> pd.DataFrame:
        if self.date_column not in df.columns:
            raise ValueError(
                f"Event data did not produce a '{self.date_column}' column. Available columns: {df.columns.tolist()}")

        try:
            df[self.date_column] = pd.to_datetime(df[self.date_column])
        except (ValueError, TypeError) as e:
            raise ValueError(f"Could not convert '{self.date_column}' column to datetime: {e}")

        return df.sort_values(by=self.date_column).reset_index(drop=True)


def _load_csv_from_url_or_path(url_or_path: str) -> pd.DataFrame:
    """
    Loads a CSV file from a URL or a local file path.

    Args:
        url_or_path (str): The URL or local file path to the CSV file.

    Returns:
        pd.DataFrame: The raw CSV contents.
    """
    if url_or_path.lower().startswith(('http://', 'https://')):
        try:
            response = requests.get(url_or_path, allow_redirects=True)
            response.raise_for_status()  # Raise an exception for bad status codes
        except requests.exceptions.RequestException as e:
            logger.error(f"Failed to fetch event data from URL: {url_or_path}. Error: {e}", exc_info=True)
            raise ConnectionError(f"Failed to fetch event data from URL: {url_or_path}")
        logger.info(f"Successfully fetched event data from URL: {url_or_path}")
        return pd.read_csv(io.StringIO(response.content.decode("utf-8")), thousands=',')

    try:
        return pd.read_csv(url_or_path, thousands=',')
    except FileNotFoundError:
        logger.error(f"Event data file not found at local path: {url_or_path}")
        raise FileNotFoundError(f"Event data file not found at: {url_or_path}")
