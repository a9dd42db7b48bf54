import pandas as pd
import plotly.graph_objects as go
from plotly.subplots import make_subplots

from .candles import CandleSeries
from .optimizer import DetailedRunResult


class TradingVisualizer:
    def __init__(self, candles: CandleSeries, result: DetailedRunResult):
        self.data = candles.to_dataframe()
        self.result = result

    def fills_frame(self) -> pd.DataFrame:
        """Buy and sell fills as rows, sorted by fill time"""
        rows = []
        for position in self.result.transaction:
            rows.append({'timestamp': position.buy.timestamp, 'action': 'BUY',
                         'price': position.buy.price, 'profit': 0.0})
            if position.sell is not None:
                rows.append({'timestamp': position.sell.timestamp, 'action': 'SELL',
                             'price': position.sell.price, 'profit': position.profit})
        fills = pd.DataFrame(rows, columns=['timestamp', 'action', 'price', 'profit'])
        fills['timestamp'] = pd.to_datetime(fills['timestamp'], unit='ms')
        return fills.sort_values('timestamp', kind='stable').reset_index(drop=True)

    def create_trading_view(self) -> go.Figure:
        """Price with grid fills on top, realized profit below"""
        fig = make_subplots(
            rows=2, cols=1,
            shared_xaxes=True,
            vertical_spacing=0.05,
            subplot_titles=('Price & Fills', 'Realized Profit'),
            row_heights=[0.7, 0.3]
        )

        fig.add_trace(
            go.Candlestick(
                x=self.data.index,
                open=self.data['open'],
                high=self.data['high'],
                low=self.data['low'],
                close=self.data['close'],
                name='Price'
            ),
            row=1, col=1
        )

        fills = self.fills_frame()
        for action, color, symbol in (('BUY', 'green', 'triangle-up'), ('SELL', 'red', 'triangle-down')):
            subset = fills[fills['action'] == action]
            fig.add_trace(
                go.Scatter(
                    x=subset['timestamp'],
                    y=subset['price'],
                    mode='markers',
                    marker=dict(color=color, symbol=symbol, size=10),
                    name=action
                ),
                row=1, col=1
            )

        sells = fills[fills['action'] == 'SELL']
        fig.add_trace(
            go.Scatter(
                x=sells['timestamp'],
                y=sells['profit'].cumsum(),
                mode='lines',
                line=dict(shape='hv'),
                name='Realized Profit'
            ),
            row=2, col=1
        )

        fig.update_layout(
            title=f"Grid interval {self.result.interval} "
                  f"({self.result.position_count} x {self.result.position_amount})",
            xaxis_rangeslider_visible=False,
            height=800
        )
        return fig

    def to_html(self) -> str:
        return self.create_trading_view().to_html(include_plotlyjs='cdn', full_html=True)
